"""
Value types shared by the device watcher components.

All of these live for a single evaluation; nothing here is persisted.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional

LOCATION_UNKNOWN = "Location unknown"
HOST_UNRESOLVED = "we were not able to get the host for this IP address"


@dataclass(frozen=True)
class Identity:
    """The authenticated user as seen by the watcher (read-only)."""
    id: str
    display_name: str
    login_name: str
    email: str
    role: Optional[str] = None


@dataclass(frozen=True)
class DeviceCheck:
    """Inbound request: one per authenticated HTTP request."""
    identity: Identity
    remote_address: str
    user_agent: str
    presented_token: Optional[str]
    now: int  # epoch seconds
    secure: bool = False


@dataclass(frozen=True)
class Location:
    """Best-effort geolocation of the remote address."""
    human: str = LOCATION_UNKNOWN
    city: Optional[str] = None
    region: Optional[str] = None
    country_long: Optional[str] = None


@dataclass(frozen=True)
class DecisionContext:
    """Request-scoped record the decision pipeline operates on."""
    identity: Identity
    remote_address: str
    user_agent: str
    location: Location = field(default_factory=Location)
    hostname: str = HOST_UNRESOLVED
    tentative_send: bool = True

    def with_enrichment(self, location: Location, hostname: str) -> "DecisionContext":
        return replace(self, location=location, hostname=hostname)


class Outcome(str, Enum):
    """Terminal states of one evaluation."""
    UNMONITORED = "unmonitored"
    KNOWN = "known"
    DUPLICATE = "duplicate"
    SUPPRESSED = "suppressed"
    NO_SEND = "no_send"
    NOTIFIED = "notified"


@dataclass
class ComposedMessage:
    subject: str
    body: str
    html: str
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class DeviceDecision:
    """Result of ``DeviceWatcher.evaluate``."""
    outcome: Outcome
    identity: Identity
    token: Optional[str] = None
    context: Optional[DecisionContext] = None
    send_email: bool = False
    recipients: List[str] = field(default_factory=list)
    subject: Optional[str] = None

    @property
    def is_new_device(self) -> bool:
        return self.outcome not in (Outcome.UNMONITORED, Outcome.KNOWN)
