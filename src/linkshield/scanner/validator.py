"""URL validation performed before any network access."""

import ipaddress
import re
import socket
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from ..utils.logging import get_structured_logger
from .types import UrlValidation, ValidationRejection

logger = get_structured_logger(__name__)

BLOCKED_SCHEMES = frozenset({"file", "javascript", "data", "vbscript"})

# Internal application pages; never probed, always reported live/safe
PRIVILEGED_SCHEMES = {
    "chrome": "Browser internal page",
    "chrome-extension": "Extension page",
}

PRIVATE_HOST_PATTERNS = [
    re.compile(r"^127\."),
    re.compile(r"^10\."),
    re.compile(r"^172\.(1[6-9]|2\d|3[01])\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^169\.254\."),
    re.compile(r"^::1$"),
    re.compile(r"^fe80:", re.IGNORECASE),
    re.compile(r"^fc00:", re.IGNORECASE),
    re.compile(r"^fd00:", re.IGNORECASE),
    re.compile(r"^localhost$", re.IGNORECASE),
]


def _parse_address(hostname: str):
    """IP address for ``hostname``, including shorthand IPv4 such as ``2130706433``."""
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        pass
    try:
        return ipaddress.IPv4Address(socket.inet_aton(hostname))
    except (OSError, ValueError):
        return None


def is_internal_host(hostname: str) -> bool:
    """True for localhost and any private, loopback, link-local or unspecified address."""
    if any(pattern.search(hostname) for pattern in PRIVATE_HOST_PATTERNS):
        return True

    address = _parse_address(hostname)
    if address is None:
        return False
    if getattr(address, "ipv4_mapped", None) is not None:
        address = address.ipv4_mapped
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
    )


def _reject(reason: str, url: str = "") -> UrlValidation:
    return UrlValidation(valid=False, url=url, reason=reason)


def privileged_label(raw: str) -> Optional[str]:
    """Label for an internal-page URL, or None for anything else."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        scheme = urlsplit(raw.strip()).scheme.lower()
    except ValueError:
        return None
    return PRIVILEGED_SCHEMES.get(scheme)


def validate_url(raw: str) -> UrlValidation:
    """Validate and normalize a raw URL string.

    Pure function: no I/O. Privileged schemes validate with
    ``privileged=True``; ordinary URLs must be http(s), must not carry
    credentials and must not point at a private or loopback host.
    """
    if not raw or not isinstance(raw, str) or not raw.strip():
        return _reject("Invalid URL: empty or not a string")

    candidate = raw.strip()
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return _reject("Invalid URL format", candidate)

    scheme = parts.scheme.lower()
    if not scheme:
        return _reject("Invalid URL format", candidate)

    label = PRIVILEGED_SCHEMES.get(scheme)
    if label:
        return UrlValidation(
            valid=True, url=candidate, privileged=True, privileged_label=label
        )

    if scheme in BLOCKED_SCHEMES:
        return _reject(f"Blocked URL scheme: {scheme}", candidate)

    if scheme not in ("http", "https"):
        return _reject("Only HTTP and HTTPS URLs are allowed", candidate)

    try:
        hostname = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return _reject("Invalid URL format", candidate)

    if not hostname or any(ch.isspace() for ch in hostname):
        return _reject("Invalid URL format", candidate)

    hostname = hostname.lower()
    if is_internal_host(hostname):
        return _reject("Private/internal IP addresses are not allowed", candidate)

    if parts.username or parts.password:
        return _reject("URLs with credentials are not allowed", candidate)

    netloc = parts.netloc.lower()
    normalized = urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))
    return UrlValidation(valid=True, url=normalized)


def sanitize_url(raw: str) -> Optional[str]:
    """Normalized URL, or None when validation fails."""
    validation = validate_url(raw)
    if not validation.valid:
        logger.warning("URL validation failed", url=raw, reason=validation.reason)
        return None
    return validation.url


def ensure_valid_url(raw: str) -> UrlValidation:
    """Like ``validate_url`` but raises ``ValidationRejection`` on failure."""
    validation = validate_url(raw)
    if not validation.valid:
        raise ValidationRejection(validation.reason, url=raw or "")
    return validation
