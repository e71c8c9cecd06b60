"""Audit logging helper functions for security events.

Standard single-line ``AUDIT key=value`` logs so they are easy to index.
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Optional, Any

_logger = logging.getLogger("devicewatch.audit")


def _emit(event: str, user_id: Optional[str] = None, **data: Any):
    payload = {"ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"), "event": event}
    if user_id:
        payload["user_id"] = user_id
    payload.update(data)
    parts = [f"{k}={repr(v)}" for k, v in payload.items()]
    _logger.info("AUDIT " + " ".join(parts))

# Public convenience wrappers

def log_device_decision(decision) -> None:
    """Observer for DeviceWatcher: one line per evaluated request."""
    context = decision.context
    _emit(
        "device.decision",
        user_id=str(decision.identity.id),
        outcome=decision.outcome.value,
        new_device=decision.is_new_device,
        send_email=decision.send_email,
        remote_address=context.remote_address if context else None,
        hostname=context.hostname if context else None,
        location=context.location.human if context else None,
        recipients=len(decision.recipients),
    )


def log_email_send(purpose: str, recipients: int, sent: bool, user_id: str | None = None):
    _emit("email.send", user_id=user_id, purpose=purpose, recipients=recipients, sent=sent)
