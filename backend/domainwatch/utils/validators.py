"""Domain input validation.

Every probe-triggering entry point passes its domain through here before
any network I/O happens.
"""
import ipaddress
import re

from ..errors import ValidationError

MAX_DOMAIN_LENGTH = 253

DOMAIN_PATTERN = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$"
)

BLOCKED_HOSTS = {"localhost", "localhost.localdomain", "broadcasthost"}
BLOCKED_SUFFIXES = (".localhost", ".local", ".internal", ".corp", ".lan", ".home.arpa")


def _clean_domain(value: str) -> str:
    """Strip scheme, credentials, path, port and trailing dot."""
    domain = value.strip().lower()
    if "://" in domain:
        domain = domain.split("://", 1)[1]
    for sep in ("/", "?", "#"):
        domain = domain.split(sep, 1)[0]
    if "@" in domain:
        domain = domain.rsplit("@", 1)[1]
    if domain.startswith("["):
        # Bracketed IPv6 literal, keep it whole so it gets rejected below
        return domain.split("]", 1)[0].lstrip("[")
    if domain.count(":") == 1:
        domain = domain.split(":", 1)[0]
    return domain.rstrip(".")


def check_domain(value: str) -> str:
    """Normalize a domain and validate it.
    
    Raises:
        ValueError: If the domain is malformed or points at a blocked host
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Domain is required")
    
    domain = _clean_domain(value)
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        raise ValueError("Invalid domain format")
    
    try:
        ipaddress.ip_address(domain)
    except ValueError:
        pass
    else:
        raise ValueError("IP addresses are not allowed, use a domain name")
    
    if domain in BLOCKED_HOSTS or domain.endswith(BLOCKED_SUFFIXES):
        raise ValueError("Local and internal domains are not allowed")
    
    if not DOMAIN_PATTERN.match(domain):
        raise ValueError("Invalid domain format")
    
    return domain


def validate_domain(value: str) -> str:
    """Same as check_domain, raising the application ValidationError."""
    try:
        return check_domain(value)
    except ValueError as e:
        raise ValidationError(str(e))
