"""
Policy: the extension surface of the device watcher.

Every hook has a default driven by settings. Customize by subclassing
``DevicePolicy`` and overriding methods, or by registering overrides and
observers on an instance:

    class ContractorPolicy(DevicePolicy):
        def grace_period(self) -> int:
            return 0

        def recipients(self, addresses):
            return addresses + ["soc@example.com"]

    policy = ContractorPolicy.from_settings()
    policy.register_override(lambda send, ctx: send and ctx.user_agent != "uptime-bot")
    policy.add_observer(lambda decision: print(decision.outcome))
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from devicewatch.core.settings import Settings, settings as default_settings

from .composer import DEFAULT_MESSAGE_TEMPLATE, DEFAULT_SUBJECT_TEMPLATE
from .enrichment import (
    GeoIPLocationResolver,
    LocationResolver,
    NullLocationResolver,
    reverse_dns,
)
from .grace import DEFAULT_GRACE_PERIOD
from .pipeline import Override
from .types import DeviceDecision, Identity

logger = logging.getLogger("devicewatch.device_watch")

Observer = Callable[[DeviceDecision], None]


class DevicePolicy:
    def __init__(
        self,
        *,
        monitored_roles: Iterable[str] = ("admin", "editor", "author"),
        grace_seconds: int = DEFAULT_GRACE_PERIOD,
        cookie_domains: Iterable[str] = (),
        cookie_path: str = "/",
        trusted_ips: Iterable[str] = (),
        site_name: str = "DeviceWatch",
        app_url: str = "http://localhost:8000",
        admin_email: Optional[str] = None,
        moderator_emails: Iterable[str] = (),
        reply_to_address: Optional[str] = None,
        reply_to_name: Optional[str] = None,
        cc_current_user: bool = True,
        dedup_ttl: int = 86400,
        location_resolver: Optional[LocationResolver] = None,
        hostname_lookup: Callable[[str], str] = reverse_dns,
    ):
        self.monitored_roles = {r.strip().lower() for r in monitored_roles if r and r.strip()}
        self.grace_seconds = int(grace_seconds)
        self._cookie_domains = list(cookie_domains)
        self.cookie_path = cookie_path
        self._trusted_ips = list(trusted_ips)
        self.site_name = site_name
        self.app_url = app_url
        self.admin_email = admin_email
        self.moderator_emails = list(moderator_emails)
        self.reply_to_address = reply_to_address
        self.reply_to_name = reply_to_name
        self.cc_current_user = cc_current_user
        self.dedup_ttl = int(dedup_ttl)
        self.location_resolver = location_resolver or NullLocationResolver()
        self.hostname_lookup = hostname_lookup
        self._overrides: List[Override] = []
        self._observers: List[Observer] = []

    @classmethod
    def from_settings(cls, config: Settings = None, **kwargs) -> "DevicePolicy":
        config = config or default_settings
        options = dict(
            monitored_roles=config.monitored_roles,
            grace_seconds=config.grace_period,
            cookie_domains=config.cookie_domains or [config.site_host],
            cookie_path=config.cookie_path,
            trusted_ips=config.trusted_ips,
            site_name=config.site_name,
            app_url=config.app_url,
            admin_email=config.admin_email,
            moderator_emails=config.moderator_emails,
            reply_to_address=config.reply_to_address,
            reply_to_name=config.reply_to_name,
            cc_current_user=config.cc_current_user,
            dedup_ttl=config.dedup_ttl,
            location_resolver=_location_resolver_for(config.geoip_db_path),
        )
        options.update(kwargs)
        return cls(**options)

    # --- hooks ---------------------------------------------------------

    def should_monitor(self, identity: Identity) -> bool:
        """Whether the watcher runs at all for ``identity``."""
        return bool(identity.role) and identity.role.lower() in self.monitored_roles

    def grace_period(self) -> int:
        return self.grace_seconds

    def cookie_domains(self) -> List[str]:
        return list(self._cookie_domains)

    def trusted_ips(self) -> List[str]:
        return list(self._trusted_ips)

    def subject_template(self, identity: Identity) -> str:
        return DEFAULT_SUBJECT_TEMPLATE

    def message_template(self, identity: Identity) -> str:
        return DEFAULT_MESSAGE_TEMPLATE

    def recipients(self, addresses: List[str]) -> List[str]:
        return addresses

    def cc_address(self, identity: Identity) -> Optional[str]:
        return identity.email if self.cc_current_user else None

    def headers(self, headers: Dict[str, str], identity: Identity) -> Dict[str, str]:
        return headers

    # --- registration --------------------------------------------------

    def register_override(self, override: Override) -> Override:
        """Append a send-verdict override; usable as a decorator."""
        self._overrides.append(override)
        return override

    @property
    def overrides(self) -> List[Override]:
        return list(self._overrides)

    def add_observer(self, observer: Observer) -> Observer:
        """Observers see every decision but cannot change it."""
        self._observers.append(observer)
        return observer

    @property
    def observers(self) -> List[Observer]:
        return list(self._observers)


def _location_resolver_for(db_path: Optional[str]) -> LocationResolver:
    if not db_path:
        return NullLocationResolver()
    try:
        resolver = GeoIPLocationResolver(db_path)
        logger.info(f"[device_watch] GeoIP database loaded from {db_path}")
        return resolver
    except Exception as e:
        logger.warning(f"[device_watch] could not open GeoIP database {db_path}: {e}")
        return NullLocationResolver()
