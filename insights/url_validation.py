"""
Website URL normalization and validation.

Design decisions:
- Character stripping: angle brackets and quotes never reach prompts or HTML
- Scheme defaulting: "example.com" is accepted as "https://example.com"
- Allowlisted schemes: only http and https, an explicit other scheme
  (ftp://, file://) is rejected rather than rewritten
- Blocklist for loopback / internal hosts and a few suspicious patterns

Known limitations (acceptable for a demo):
- Purely syntactic: no DNS lookup, no reachability check
- Hostnames that resolve to private addresses are not detected

Errors are returned as values (UrlValidation.error), never raised: a bad URL
is a user mistake to display, not a failure.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

URL_REQUIRED_ERROR = "URL is required"
INVALID_URL_ERROR = "Please enter a valid URL (e.g., https://example.com)"

_ALLOWED_SCHEMES = {"http", "https"}
_STRIP_CHARS = re.compile(r"[<>'\"]")
_HAS_HTTP_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_EXPLICIT_SCHEME = re.compile(r"^([a-z][a-z0-9+.\-]*)://", re.IGNORECASE)
_HOST_LABEL = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

BLOCKED_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1", "local", "internal"})
BLOCKED_HOST_SUFFIXES = (".localhost", ".local", ".internal")

# Scheme tokens must start a word: "/metadata:v2" passes, "?u=data:..." does not
SUSPICIOUS_PATTERNS = [
    re.compile(r"(?<![a-z0-9])javascript:", re.IGNORECASE),
    re.compile(r"(?<![a-z0-9])data:", re.IGNORECASE),
    re.compile(r"(?<![a-z0-9])file:", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"\.\."),
]


@dataclass(frozen=True)
class UrlValidation:
    """Outcome of validate_and_sanitize_url()."""

    is_valid: bool
    sanitized_url: str
    error: str | None = None


def sanitize_url(url: str) -> str:
    """
    Strip dangerous characters and make sure the URL carries a scheme.

    Args:
        url: Raw user input

    Returns:
        Cleaned URL, "https://" prepended when no http(s) scheme is present
    """
    if not url:
        return ""

    cleaned = _STRIP_CHARS.sub("", url.strip())
    if not _HAS_HTTP_SCHEME.match(cleaned):
        return f"https://{cleaned}"
    return cleaned


def _is_blocked_ip(host: str) -> bool | None:
    """Return None if host is not an IP literal, else whether it is blocked."""
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return None
    return ip.is_loopback or ip.is_unspecified or ip.is_link_local or ip.is_private


def _is_well_formed_hostname(host: str) -> bool:
    try:
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    ascii_host = ascii_host.rstrip(".")
    if not ascii_host or len(ascii_host) > 253:
        return False
    return all(_HOST_LABEL.match(label) for label in ascii_host.split("."))


def is_valid_url(url: str) -> bool:
    """
    Check that an already-sanitized URL is an acceptable website address.

    Rules:
    - scheme is exactly http or https
    - host is a well-formed hostname or a public IP literal
    - no credentials in the authority, port (if any) parses
    - host is not loopback/internal, no suspicious pattern anywhere
    """
    try:
        parts = urlsplit(url)
        # Accessing .port raises ValueError on a malformed port
        parts.port
    except ValueError:
        return False

    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        return False
    if parts.username is not None or parts.password is not None:
        return False

    host = (parts.hostname or "").lower()
    if not host:
        return False
    if host in BLOCKED_HOSTS or host.endswith(BLOCKED_HOST_SUFFIXES):
        return False

    blocked_ip = _is_blocked_ip(host)
    if blocked_ip is None:
        if not _is_well_formed_hostname(host):
            return False
    elif blocked_ip:
        return False

    if any(p.search(url) for p in SUSPICIOUS_PATTERNS):
        return False

    return True


def validate_and_sanitize_url(url: str | None) -> UrlValidation:
    """
    Normalize a user-supplied website URL and validate it.

    Args:
        url: Raw user input (may be empty or None)

    Returns:
        UrlValidation with the sanitized URL and, when invalid, a
        user-facing error message
    """
    if not url or not url.strip():
        return UrlValidation(is_valid=False, sanitized_url="", error=URL_REQUIRED_ERROR)

    explicit = _EXPLICIT_SCHEME.match(url.strip())
    sanitized = sanitize_url(url)

    # "ftp://x.com" would otherwise become "https://ftp://x.com"
    if explicit and explicit.group(1).lower() not in _ALLOWED_SCHEMES:
        return UrlValidation(is_valid=False, sanitized_url=sanitized, error=INVALID_URL_ERROR)

    if not is_valid_url(sanitized):
        return UrlValidation(is_valid=False, sanitized_url=sanitized, error=INVALID_URL_ERROR)

    return UrlValidation(is_valid=True, sanitized_url=sanitized)


def detect_page_type(url: str, default: str = "Homepage") -> str:
    """
    Guess the kind of page from the URL path.

    Used to pre-select the "current page" in the demo form.

    Args:
        url: Sanitized website URL
        default: Returned when no keyword matches

    Returns:
        One of "Pricing", "Product", "Homepage", "About", "Contact" or default
    """
    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        return default

    if "pricing" in path or "plans" in path:
        return "Pricing"
    if "product" in path or "features" in path:
        return "Product"
    if path in ("", "/") or "home" in path:
        return "Homepage"
    if "about" in path:
        return "About"
    if "contact" in path:
        return "Contact"
    return default
