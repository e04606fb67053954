"""Input checks run before any write.

Checks, in order::

    long_url    non-empty, <= MAX_URL_LENGTH        else InvalidURLError
                has "scheme://"                      else InvalidURLError
                scheme in {http, https}              else UnsupportedSchemeError
                host is a domain, IP or localhost    else InvalidURLError
                host[:port] != BASE_URL host[:port]  else InvalidURLError
                (a scheme's default port is dropped on both sides)
    custom_code 1..MAX_CODE_LENGTH of [0-9A-Za-z_-]  else InvalidCodeError
                not a reserved route segment         else InvalidCodeError
"""

import re
from urllib.parse import urlsplit

import validators

from shortlink.exceptions import InvalidCodeError, InvalidURLError, UnsupportedSchemeError

__all__ = [
    "ALLOWED_SCHEMES",
    "RESERVED_CODES",
    "normalize_netloc",
    "validate_long_url",
    "validate_custom_code",
    "is_plausible_code",
]

ALLOWED_SCHEMES = frozenset({"http", "https"})
DEFAULT_PORTS = {"http": 80, "https": 443}

# Path segments the HTTP surface serves itself.
RESERVED_CODES = frozenset({"api", "health", "metrics", "docs", "redoc", "openapi.json", "shorten"})

_CODE_PATTERN = re.compile(r"[0-9A-Za-z_-]+")
_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def normalize_netloc(scheme: str, host: str, port: int | None) -> str:
    """``host[:port]`` lower-cased, without the port when it is the scheme's default."""
    host = host.lower()
    if port is None or port == DEFAULT_PORTS.get(scheme.lower()):
        return host
    return f"{host}:{port}"


def _is_valid_host(host: str) -> bool:
    if host == "localhost":
        return True
    return bool(validators.domain(host) or validators.ipv4(host) or validators.ipv6(host))


def validate_long_url(long_url: str, public_netloc: str, max_length: int = 2048) -> str:
    """Validate a destination URL and return it unchanged.

    Args:
        long_url: Destination submitted by the caller.
        public_netloc: ``host[:port]`` this service redirects from, as
            returned by ``normalize_netloc``.
        max_length: Maximum accepted length.

    Raises:
        InvalidURLError: Empty, too long, malformed, or pointing at this service.
        UnsupportedSchemeError: Scheme other than http or https.
    """
    if not long_url or not long_url.strip():
        raise InvalidURLError("URL must not be empty")
    if len(long_url) > max_length:
        raise InvalidURLError(f"URL must be at most {max_length} characters")
    if not _SCHEME_PATTERN.match(long_url):
        raise InvalidURLError("URL must be absolute and include a scheme")

    try:
        parts = urlsplit(long_url)
        port = parts.port
    except ValueError as exc:
        raise InvalidURLError(f"URL could not be parsed: {exc}") from exc

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise UnsupportedSchemeError(f"Scheme '{parts.scheme}' is not supported; use http or https")

    host = (parts.hostname or "").lower()
    if not host or not _is_valid_host(host):
        raise InvalidURLError(f"URL host '{host}' is not a valid hostname")

    if normalize_netloc(parts.scheme, host, port) == public_netloc.lower():
        raise InvalidURLError("URL must not point back at this service")

    return long_url


def validate_custom_code(code: str, max_length: int = 12) -> str:
    if not 1 <= len(code) <= max_length:
        raise InvalidCodeError(f"Custom code must be between 1 and {max_length} characters")
    if not _CODE_PATTERN.fullmatch(code):
        raise InvalidCodeError("Custom code may only contain letters, digits, '-' and '_'")
    if code.lower() in RESERVED_CODES:
        raise InvalidCodeError(f"Custom code '{code}' is reserved")
    return code


def is_plausible_code(code: str, max_length: int = 12) -> bool:
    """Whether ``code`` could have been issued at all, generated or custom."""
    return 1 <= len(code) <= max_length and _CODE_PATTERN.fullmatch(code) is not None
