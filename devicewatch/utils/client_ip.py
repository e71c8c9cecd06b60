"""
Client request context extraction.

Finds the real client IP address behind reverse proxies and cleans up the
User-Agent header before it ends up in an email.

X-Forwarded-For is only honoured when the socket peer is one of the
configured trusted proxies (NDN_TRUSTED_PROXIES). Any client can send the
header, and the resulting address feeds the trusted-IP allowlist, so a
request arriving directly is always attributed to its socket peer.

Note: When Uvicorn runs with --proxy-headers and --forwarded-allow-ips,
request.client.host already reflects X-Forwarded-For; leave
NDN_TRUSTED_PROXIES empty in that setup.
"""

import ipaddress
import re
from typing import Iterable

from fastapi import Request

_TAG_RE = re.compile(r"<[^>]*>")


def _valid_ip(value: str) -> str:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return ""


def _is_trusted_proxy(peer: str, trusted_proxies: Iterable[str]) -> bool:
    if not peer:
        return False
    normalized = _valid_ip(peer)
    for proxy in trusted_proxies:
        proxy = proxy.strip()
        if proxy == peer or (normalized and _valid_ip(proxy) == normalized):
            return True
    return False


def get_client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """
    Extract the client IP address from a request.

    Uses the first X-Forwarded-For entry (the original client) when the
    socket peer is a trusted proxy, otherwise the socket peer itself.

    Returns:
        Normalized IP address string, or "" if unavailable or unparseable
    """
    peer = request.client.host if request.client else ""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and _is_trusted_proxy(peer, trusted_proxies):
        return _valid_ip(forwarded.split(",")[0])
    return _valid_ip(peer)


def get_user_agent(request: Request) -> str:
    """User-Agent header with HTML tags stripped."""
    return _TAG_RE.sub("", request.headers.get("User-Agent", "")).strip()
