"""
Client identity helpers.

A raw address is first turned into a client identity (a canonical IP, or the
``unknown`` sentinel), then into a storage key that is safe to use as a
database key or a realtime-database path segment.
"""
import ipaddress
import re
from typing import Optional

UNKNOWN_IDENTITY = "unknown"

# Characters that are not allowed in realtime-database path segments, plus ':' for IPv6
_ILLEGAL_KEY_CHARS = re.compile(r"[.$#\[\]/:]")


def client_identity(raw: Optional[str]) -> str:
    """Canonical IP string for a raw header value, or the sentinel when unparseable."""
    if not raw:
        return UNKNOWN_IDENTITY

    # X-Forwarded-For: client, proxy1, proxy2
    candidate = raw.split(",")[0].strip()
    if not candidate:
        return UNKNOWN_IDENTITY

    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return UNKNOWN_IDENTITY


def storage_key(identity: str) -> str:
    """Map an identity to its storage key. Idempotent."""
    key = _ILLEGAL_KEY_CHARS.sub("_", identity.strip().lower())
    return key or UNKNOWN_IDENTITY
