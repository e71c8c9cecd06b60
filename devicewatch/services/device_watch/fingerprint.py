"""Device token derivation and verification.

The token is ``HMAC-SHA256(installation_secret, identity_id)``. Nothing is
stored server-side: the client keeps the token in a cookie and the server
recomputes the expected value on every request.
"""
import hashlib
import hmac
import secrets
import string
from typing import Optional

SECRET_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*()-_[]{}<>~`+=,.;:/?|"


def generate_secret(length: int = 64) -> str:
    """Random installation secret (generated once, persisted forever)."""
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))


def derive(identity_id, secret: str) -> str:
    """Deterministic device token for ``identity_id`` under ``secret``."""
    return hmac.new(
        secret.encode("utf-8"), str(identity_id).encode("utf-8"), hashlib.sha256
    ).hexdigest()


def verify(presented_token: Optional[str], identity_id, secret: str) -> bool:
    """True iff the presented token is exactly the derived token."""
    if not presented_token:
        return False
    return presented_token == derive(identity_id, secret)
