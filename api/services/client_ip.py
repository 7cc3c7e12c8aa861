"""
Client IP extraction for proxied requests.

Proxy headers are tried in priority order; the first one holding a
syntactically valid address wins. Forwarding chains ("client, proxy1,
proxy2") yield their first valid entry.
"""

import ipaddress
import logging
from typing import Mapping, Optional

from fastapi import Request

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

# Common proxy headers, highest priority first
IP_HEADER_CANDIDATES = (
    "X-Forwarded-For",
    "X-Real-IP",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "HTTP_X_FORWARDED_FOR",
    "HTTP_X_FORWARDED",
    "HTTP_X_CLUSTER_CLIENT_IP",
    "HTTP_CLIENT_IP",
    "HTTP_FORWARDED_FOR",
    "HTTP_FORWARDED",
    "HTTP_VIA",
    "REMOTE_ADDR",
)


def is_valid_ip(value: Optional[str]) -> bool:
    """True for a bare IPv4 or IPv6 address."""
    if not value or value.strip().lower() == UNKNOWN:
        return False
    try:
        ipaddress.ip_address(value.strip())
    except ValueError:
        return False
    return True


def first_valid_ip(value: Optional[str]) -> Optional[str]:
    """First valid address in a single value or a comma-separated chain."""
    if not value:
        return None
    for candidate in value.split(","):
        candidate = candidate.strip()
        if is_valid_ip(candidate):
            return candidate
    return None


def extract_client_ip(headers: Mapping[str, str], peer_address: Optional[str]) -> Optional[str]:
    """Resolve the caller's address from proxy headers, falling back to the peer."""
    for header in IP_HEADER_CANDIDATES:
        ip = first_valid_ip(headers.get(header))
        if ip:
            logger.debug(f"Found client IP from header {header}: {ip}")
            return ip

    ip = first_valid_ip(peer_address)
    if ip:
        logger.debug(f"Using peer address as client IP: {ip}")
        return ip

    logger.warning("Could not determine client IP address from request")
    return None


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP, respecting proxy forwarding headers."""
    peer = request.client.host if request.client else None
    return extract_client_ip(request.headers, peer)
