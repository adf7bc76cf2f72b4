"""
Origin key derivation.

Rules are partitioned by a registrable-domain style key. The same function is
used by planning, storage and reset so the key is never derived twice.

Edge cases:
  - ``news.example.com``    -> ``example.com``
  - ``www.bbc.co.uk``       -> ``bbc.co.uk``
  - ``example.co.uk``       -> ``example.co.uk``
  - ``example.com``         -> ``example.com``
  - ``localhost``           -> ``localhost``
  - ``192.168.0.10``        -> ``192.168.0.10``
  - ``""`` / unparseable    -> ``unknown.domain``
"""

import re
from urllib.parse import urlsplit

UNKNOWN_ORIGIN = "unknown.domain"

# Second-level labels that behave like public suffixes (co.uk, com.au, ...)
SECOND_LEVEL_SUFFIXES = frozenset({"co", "com", "org", "gov", "net", "ac", "edu"})

_IPV4 = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


def hostname_of(url_or_host: str) -> str:
    """Return the lower-cased hostname of a URL, or the input if it is already a host."""
    value = (url_or_host or "").strip()
    if not value:
        return ""
    if "://" not in value:
        value = f"//{value}"
    try:
        host = urlsplit(value).hostname or ""
    except ValueError:
        return ""
    return host.rstrip(".").lower()


def origin_key(url_or_host: str) -> str:
    """Derive the origin key for a URL or hostname."""
    host = hostname_of(url_or_host)
    if not host:
        return UNKNOWN_ORIGIN
    if _IPV4.match(host):
        return host

    parts = [p for p in host.split(".") if p]
    if len(parts) <= 2:
        return ".".join(parts)

    if parts[-2] in SECOND_LEVEL_SUFFIXES and len(parts[-1]) == 2:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])
