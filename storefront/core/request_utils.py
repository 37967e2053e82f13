"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def parse_trusted_proxies(value: str) -> frozenset[str]:
    """Parse a comma-separated TRUSTED_PROXY_IPS value."""
    return frozenset(ip.strip() for ip in value.split(",") if ip.strip())


def get_client_ip(request: Request, trusted_proxies: frozenset[str] = frozenset()) -> str:
    """Get the client IP address from a request.

    X-Forwarded-For and X-Real-IP are honoured only when the direct peer is a
    configured trusted proxy. Otherwise they are ignored, since any client
    can set them.

    Returns:
        Client IP address, or "unknown" when the transport exposes none.
    """
    direct_ip = request.client.host if request.client else None

    if direct_ip and direct_ip in trusted_proxies:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(f"Invalid IP in X-Forwarded-For header: {client_ip}")

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid X-Real-IP: {real_ip}")
    elif request.headers.get("X-Forwarded-For"):
        logger.debug(f"Ignoring X-Forwarded-For from untrusted source: {direct_ip}")

    return direct_ip or "unknown"
