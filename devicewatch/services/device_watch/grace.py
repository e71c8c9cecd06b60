"""Grace period after first activation.

Right after the watcher is switched on every existing user looks "new", so
notifications are held back until normal traffic has handed out tokens.
"""

DEFAULT_GRACE_PERIOD = 604800  # 1 week


def suppress(now: int, install_timestamp: int, grace_seconds: int) -> bool:
    return now - install_timestamp < grace_seconds


def grace_remaining(now: int, install_timestamp: int, grace_seconds: int) -> int:
    return max(0, install_timestamp + grace_seconds - now)
