"""Validation utilities for shortmap.

All functions here are pure: they take a value and answer a question about
it, without touching storage. URL handling is a two-step contract:
`normalize_url` prepends "https://" when no scheme is present, and
`validate_url` checks the normalized form. The stored target is always the
normalized form.
"""

import math
import re
from typing import Any, Optional
from urllib.parse import urlparse

SHORTCODE_PATTERN = re.compile(r"^[A-Za-z0-9]{3,20}$")
SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
HOST_PATTERN = re.compile(
    r"^(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,63}\.?$"
)
IPV4_PATTERN = re.compile(r"^(?:(?:25[0-5]|2[0-4]\d|1?\d?\d)\.){3}(?:25[0-5]|2[0-4]\d|1?\d?\d)$")

MAX_URL_LENGTH = 2048
MAX_PERIOD_HOURS = 8760  # hours in a non-leap year


def normalize_url(url: str) -> str:
    """Strip surrounding whitespace and prepend https:// if no scheme is given.

    >>> normalize_url("example.com/a")
    'https://example.com/a'
    >>> normalize_url("http://example.com")
    'http://example.com'
    """
    if not url:
        return ""
    url = url.strip()
    if SCHEME_PATTERN.match(url):
        return url
    return f"https://{url}"


def validate_url(url: Any) -> bool:
    """Return True for absolute http/https URLs (after normalization)."""
    if not url or not isinstance(url, str):
        return False
    candidate = normalize_url(url)
    if len(candidate) > MAX_URL_LENGTH or any(ch.isspace() for ch in candidate):
        return False
    try:
        parsed = urlparse(candidate)
        host = parsed.hostname or ""
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return False
    # no user info, or "mailto:x@host" would pass once prefixed with https://
    if parsed.username is not None or parsed.password is not None:
        return False
    return bool(HOST_PATTERN.match(host) or IPV4_PATTERN.match(host))


def validate_shortcode(code: Any) -> bool:
    """Shortcodes are 3-20 ASCII letters or digits."""
    if not isinstance(code, str):
        return False
    return bool(SHORTCODE_PATTERN.match(code))


def parse_period_hours(value: Any) -> Optional[float]:
    """
    Parse an expiry period in hours.

    Returns:
        None when no period was given (None or a blank string), else the
        number of hours.

    Raises:
        ValueError: If the value is not a finite number in (0, 8760].
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValueError("Validity period must be a number of hours")
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Validity period must be a number of hours, got {value!r}")
    if not math.isfinite(hours) or hours <= 0 or hours > MAX_PERIOD_HOURS:
        raise ValueError(f"Validity period must be between 0 and {MAX_PERIOD_HOURS} hours")
    return hours


def validate_period_hours(value: Any) -> bool:
    """Absent periods are valid (no expiry); present ones must be in (0, 8760]."""
    try:
        parse_period_hours(value)
    except ValueError:
        return False
    return True
