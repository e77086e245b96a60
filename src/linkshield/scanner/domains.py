"""Curated domain lists and host classification helpers."""

import re
from collections.abc import Iterable
from typing import Optional
from urllib.parse import urlsplit

# Registrars, marketplaces and parking services that host placeholder pages
PARKING_DOMAINS = (
    "hugedomains.com",
    "godaddy.com",
    "namecheap.com",
    "namesilo.com",
    "porkbun.com",
    "dynadot.com",
    "epik.com",
    "sedo.com",
    "dan.com",
    "afternic.com",
    "domainmarket.com",
    "uniregistry.com",
    "squadhelp.com",
    "brandbucket.com",
    "undeveloped.com",
    "atom.com",
    "bodis.com",
    "parkingcrew.net",
    "parkingcrew.com",
    "above.com",
    "sedoparking.com",
)

# Static hosting platforms that must never be reported as parked
PARKING_EXEMPTIONS = (
    "github.io",
    "github.com",
    "githubusercontent.com",
    "gitlab.io",
    "gitlab.com",
    "pages.dev",
    "netlify.app",
    "vercel.app",
    "herokuapp.com",
)

# Platforms exempt from local blocklist matches (not from reputation or heuristics)
TRUSTED_DOMAINS = (
    "archive.org",
    "github.io",
    "githubusercontent.com",
    "github.com",
    "gitlab.com",
    "gitlab.io",
    "docs.google.com",
    "sites.google.com",
    "drive.google.com",
)

URL_SHORTENERS = frozenset(
    {
        "bit.ly",
        "tinyurl.com",
        "goo.gl",
        "t.co",
        "ow.ly",
        "is.gd",
        "buff.ly",
        "adf.ly",
        "bl.ink",
        "lnkd.in",
        "short.link",
        "cutt.ly",
        "rebrand.ly",
        "tiny.cc",
        "rb.gy",
        "clck.ru",
        "shorturl.at",
        "v.gd",
    }
)

SUSPICIOUS_TLDS = (
    ".xyz", ".top", ".tk", ".ml", ".ga", ".cf", ".gq", ".pw", ".cc", ".ws",
    ".info", ".biz", ".club", ".click", ".link", ".download", ".stream",
    ".loan", ".win", ".bid", ".trade", ".racing", ".party", ".review",
    ".science", ".work", ".date", ".faith", ".cricket", ".accountant",
)

IPV4_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}(:\d+)?$")
IPV6_PATTERN = re.compile(r"^\[?([0-9a-f:]+)\]?(:\d+)?$", re.IGNORECASE)


def hostname_of(url: str) -> Optional[str]:
    """Lowercased hostname of a URL, None when it cannot be parsed."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def matches_domain(hostname: Optional[str], domains: Iterable[str]) -> bool:
    """Exact or subdomain match of ``hostname`` against ``domains``."""
    if not hostname:
        return False
    host = hostname.lower()
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def is_parking_exempt(hostname: Optional[str]) -> bool:
    return matches_domain(hostname, PARKING_EXEMPTIONS)


def is_trusted_domain(hostname: Optional[str], extra: Iterable[str] = ()) -> bool:
    return matches_domain(hostname, TRUSTED_DOMAINS) or matches_domain(hostname, extra)


def is_parking_domain(hostname: Optional[str]) -> bool:
    """Substring match against the parking list, skipping exempt platforms."""
    if not hostname or is_parking_exempt(hostname):
        return False
    host = hostname.lower()
    return any(parking in host for parking in PARKING_DOMAINS)


def is_url_shortener(hostname: str) -> bool:
    return hostname.lower() in URL_SHORTENERS


def has_suspicious_tld(hostname: str) -> bool:
    host = hostname.lower()
    return any(host.endswith(tld) for tld in SUSPICIOUS_TLDS)


def is_ip_address(hostname: str) -> bool:
    """True for bare IPv4 or IPv6 hosts, optionally with a port."""
    if IPV4_PATTERN.match(hostname):
        return True
    return ":" in hostname and bool(IPV6_PATTERN.match(hostname))
