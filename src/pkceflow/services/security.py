"""Security utilities for authorization code flows.

Provides cryptographically secure state generation and validation, and the
secure-context check applied to redirect URIs.
"""

from __future__ import annotations

import ipaddress
import secrets
import string
from urllib.parse import urlparse

from pkceflow.models.errors import StateValidationError

LOOPBACK_HOSTS = frozenset({"localhost"})


def generate_state() -> str:
    """Generate cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the callback
    matches the original authorization request.

    Returns:
        Cryptographically secure random state string (32 characters)
    """
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(32))


def validate_state(expected: str, actual: str) -> None:
    """Validate state parameter matches expected value.

    Args:
        expected: State parameter from original authorization request
        actual: State parameter from callback URL

    Raises:
        StateValidationError: If state parameters don't match
    """
    if not secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise StateValidationError("State parameter mismatch - possible CSRF attack")


def is_loopback_host(hostname: str | None) -> bool:
    if not hostname:
        return False
    if hostname.lower() in LOOPBACK_HOSTS:
        return True
    try:
        return ipaddress.ip_address(hostname).is_loopback
    except ValueError:
        return False


def is_secure_redirect_uri(uri: str) -> bool:
    """Check a redirect URI is served from a secure context.

    Secure means HTTPS, or plain HTTP on a loopback address.

    Args:
        uri: Redirect URI to check

    Returns:
        True if the URI is HTTPS or loopback HTTP
    """
    parsed = urlparse(uri)
    if parsed.scheme == "https":
        return True
    return parsed.scheme == "http" and is_loopback_host(parsed.hostname)
