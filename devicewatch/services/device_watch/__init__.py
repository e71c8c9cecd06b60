"""
Device Watch Module

Detects when a monitored user is seen on a device it has not used before and
notifies the site moderators.

Configuration (see devicewatch.core.settings):
- NDN_GRACE_PERIOD: seconds after first activation with no notifications (default: 604800)
- NDN_DEDUP_TTL: seconds a (user, IP, user agent) sighting is remembered (default: 86400)
- NDN_COOKIE_DOMAINS / NDN_COOKIE_PATH: where the device cookie is set
- NDN_TRUSTED_IPS: addresses that never trigger a notification
- NDN_MONITORED_ROLES: roles the watcher runs for (default: admin,editor,author)
- NDN_CC_CURRENT_USER: copy the user on their own advisory (default: true)
- GEOIP_DB_PATH: optional GeoLite2-City database for location guesses

Usage:
    from devicewatch.services.device_watch import DeviceCheck, get_device_watcher

    watcher = get_device_watcher()
    decision = watcher.evaluate(check, store=OptionStore(db), transport=ResponseCookieTransport(response))
    if decision.is_new_device:
        ...

    # Custom policy
    from devicewatch.services.device_watch import DevicePolicy, DeviceWatcher

    policy = DevicePolicy.from_settings(trusted_ips=["10.0.0.1"])
    watcher = DeviceWatcher(policy, cache=MemoryCache())
"""

from typing import Optional

from .composer import (
    DEFAULT_MESSAGE_TEMPLATE,
    DEFAULT_SUBJECT_TEMPLATE,
    compose,
    format_install_date,
    recipients,
)
from .dedup import DedupGate, dedup_key
from .engine import DeviceWatcher
from .enrichment import (
    GeoIPLocationResolver,
    LocationResolver,
    NullLocationResolver,
    enrich,
)
from .fingerprint import derive, generate_secret, verify
from .grace import DEFAULT_GRACE_PERIOD, grace_remaining, suppress
from .pipeline import DecisionPipeline, build_pipeline, trusted_network_override
from .policy import DevicePolicy
from .transport import COOKIE_LIFETIME, COOKIE_NAME, CookieTransport, ResponseCookieTransport
from .types import (
    HOST_UNRESOLVED,
    LOCATION_UNKNOWN,
    DecisionContext,
    DeviceCheck,
    DeviceDecision,
    Identity,
    Location,
    Outcome,
)

# Singleton instance
_watcher: Optional[DeviceWatcher] = None


def get_device_watcher() -> DeviceWatcher:
    """Get or create the process-wide watcher with the settings-driven policy.

    The audit log is registered as an observer and SendGrid is the mailer.
    """
    global _watcher
    if _watcher is None:
        from devicewatch.services.audit import log_device_decision
        from devicewatch.services.cache import get_cache
        from devicewatch.services.email import send_security_email

        policy = DevicePolicy.from_settings()
        policy.add_observer(log_device_decision)
        _watcher = DeviceWatcher(policy, cache=get_cache(), mailer=send_security_email)
    return _watcher


def reset_device_watcher() -> None:
    """Reset the singleton (useful for testing)."""
    global _watcher
    _watcher = None


__all__ = [
    # Types
    "Identity",
    "DeviceCheck",
    "DecisionContext",
    "DeviceDecision",
    "Location",
    "Outcome",
    "LOCATION_UNKNOWN",
    "HOST_UNRESOLVED",

    # Components
    "derive",
    "verify",
    "generate_secret",
    "DedupGate",
    "dedup_key",
    "suppress",
    "grace_remaining",
    "DEFAULT_GRACE_PERIOD",
    "DecisionPipeline",
    "build_pipeline",
    "trusted_network_override",
    "LocationResolver",
    "NullLocationResolver",
    "GeoIPLocationResolver",
    "enrich",
    "compose",
    "recipients",
    "format_install_date",
    "DEFAULT_SUBJECT_TEMPLATE",
    "DEFAULT_MESSAGE_TEMPLATE",
    "CookieTransport",
    "ResponseCookieTransport",
    "COOKIE_NAME",
    "COOKIE_LIFETIME",

    # Orchestration
    "DevicePolicy",
    "DeviceWatcher",
    "get_device_watcher",
    "reset_device_watcher",
]
