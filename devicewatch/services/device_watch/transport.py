"""Cookie transport: how the device token reaches the client."""

from datetime import datetime, timezone
from typing import Optional, Protocol

from fastapi import Response

COOKIE_NAME = "deviceseenbefore"
COOKIE_LIFETIME = 10 * 365 * 24 * 60 * 60  # ~10 years


class CookieTransport(Protocol):
    def set(
        self,
        name: str,
        value: str,
        expires: int,
        path: str,
        domain: Optional[str],
        secure: bool,
        http_only: bool,
    ) -> None:
        ...


class ResponseCookieTransport:
    """Writes Set-Cookie headers onto a FastAPI/Starlette response.

    ``expires`` is an absolute epoch timestamp.
    """

    def __init__(self, response: Response):
        self.response = response

    def set(self, name, value, expires, path, domain, secure, http_only) -> None:
        self.response.set_cookie(
            key=name,
            value=value,
            expires=datetime.fromtimestamp(int(expires), tz=timezone.utc),
            path=path,
            domain=domain or None,
            secure=secure,
            httponly=http_only,
            samesite="lax",
        )
