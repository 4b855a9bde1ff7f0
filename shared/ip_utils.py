"""
Visitor identity for analytics events, pixel payloads and request logs.

Gate traffic arrives through Cloudflare and a reverse proxy, so the socket
peer is almost never the visitor. Only the first hop of a forwarding header
is taken.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

# Checked in order; the first non-empty value wins.
PROXY_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)

# Analytics rows and pixel payloads keep at most this much of the header.
MAX_USER_AGENT_LENGTH = 512


def _first_hop(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.split(",")[0].strip() or None


def get_client_ip(request: Request) -> str:
    """The visitor's IP, falling back to the socket peer, or ``""`` if neither exists."""
    for header in PROXY_HEADERS:
        ip = _first_hop(request.headers.get(header))
        if ip:
            return ip
    return request.client.host if request.client else ""


def get_user_agent(request: Request) -> Optional[str]:
    user_agent = request.headers.get("User-Agent")
    if not user_agent:
        return None
    return user_agent[:MAX_USER_AGENT_LENGTH]
