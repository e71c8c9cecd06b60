from __future__ import annotations
import time
from datetime import datetime, UTC

__all__ = ["utc_now", "epoch_now", "from_epoch"]

def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(UTC)

def epoch_now() -> int:
    """Whole seconds since the epoch; the watcher's unit of time."""
    return int(time.time())

def from_epoch(ts: int | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), UTC)
