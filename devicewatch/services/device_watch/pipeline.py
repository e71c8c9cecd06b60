"""
Decision pipeline: ordered overrides of the tentative send verdict.

Each override is a callable ``(send, context) -> bool``. Overrides run left
to right and each one receives the previous stage's output, so they compose
rather than vote independently.
"""

import logging
from typing import Callable, Iterable, List, Optional

from .types import DecisionContext

logger = logging.getLogger("devicewatch.device_watch")

Override = Callable[[bool, DecisionContext], bool]


class DecisionPipeline:
    def __init__(self, overrides: Iterable[Override] = ()):
        self._overrides: List[Override] = list(overrides)

    def register(self, override: Override) -> None:
        self._overrides.append(override)

    @property
    def overrides(self) -> List[Override]:
        return list(self._overrides)

    def apply(self, tentative_send: bool, context: DecisionContext) -> bool:
        send = tentative_send
        for override in self._overrides:
            result = bool(override(send, context))
            if result != send:
                logger.debug(
                    f"[device_watch] override {getattr(override, '__name__', override)!r} "
                    f"changed send {send} -> {result}"
                )
            send = result
        return send


def trusted_network_override(
    allowlist_provider: Callable[[], Optional[Iterable[str]]]
) -> Override:
    """Force no-send for requests from an allowlisted address (exact match).

    The allowlist is fetched on every call so changes apply to the next
    evaluation.
    """

    def trusted_network(send: bool, context: DecisionContext) -> bool:
        allowlist = allowlist_provider()
        if allowlist and context.remote_address in set(allowlist):
            return False
        return send

    return trusted_network


def build_pipeline(policy) -> DecisionPipeline:
    """Built-in overrides first, then the policy's in registration order."""
    pipeline = DecisionPipeline([trusted_network_override(policy.trusted_ips)])
    for override in policy.overrides:
        pipeline.register(override)
    return pipeline
