"""
Client address extraction and response hardening
"""
import ipaddress
from typing import Iterable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from storegate.utils.identity import client_identity


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds hardening headers to every response"""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def is_trusted_proxy(host: Optional[str], trusted_proxies: Iterable[str]) -> bool:
    """Whether ``host`` matches a trusted entry: ``*``, an exact host, an IP or a CIDR range."""
    if not host:
        return False

    host = host.strip()
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None

    for entry in trusted_proxies:
        if entry == "*" or entry == host:
            return True
        if address is None:
            continue
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def get_client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """
    Real client IP. Forwarding headers are only honoured when the socket peer
    is a trusted proxy; otherwise the peer itself is the client.
    Falls back to the ``unknown`` sentinel.
    """
    trusted_proxies = list(trusted_proxies)
    peer = request.client.host if request.client else None

    if not is_trusted_proxy(peer, trusted_proxies):
        return client_identity(peer)

    # Rightmost hop not added by one of our own proxies
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        for hop in reversed(hops):
            if not is_trusted_proxy(hop, trusted_proxies):
                return client_identity(hop)
        if hops:
            return client_identity(hops[0])

    # Single-value headers set by nginx / Netlify-style edges
    for header in ("X-Real-IP", "Client-IP"):
        value = request.headers.get(header)
        if value:
            return client_identity(value)

    return client_identity(peer)
