"""
Parsing of the timestamps found in PROPFIND responses.

getlastmodified is an HTTP-date (RFC 2616 section 3.3.1, which allows
three historic formats), creationdate is RFC 3339.  Servers are sloppy
about both, so a small table of formats is tried in a fixed order.

Known limitation: a trailing timezone token ("GMT", "Europe/Oslo") is
recognized and stripped, but its offset is NOT applied.  The returned
datetime objects are naive, and callers should not assume UTC unless
they know their server only sends GMT.
"""
from datetime import datetime
from typing import Optional

from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

HTTP_DATE_FORMATS = (
    "%a, %d %b %Y %H:%M:%S",  # RFC 822, with weekday
    "%d %b %Y %H:%M:%S",  # RFC 822, without weekday
    "%a, %d-%b-%y %H:%M:%S",  # RFC 850, with weekday
    "%d-%b-%y %H:%M:%S",  # RFC 850, without weekday
    "%a %b %d %H:%M:%S %Y",  # ANSI C asctime()
    "%a %b  %d %H:%M:%S %Y",  # asctime(), space padded day
)

RFC3339_FORMATS = (
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
)

## Abbreviations seen in the wild that aren't necessarily zoneinfo keys
ZONE_ALIASES = {"GMT", "UTC", "UT", "Z"}


def resolve_zone(token: str) -> Optional[str]:
    if not token:
        return None
    if token.upper() in ZONE_ALIASES:
        return token.upper()
    try:
        ZoneInfo(token)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None
    return token


def strip_zone(text: str) -> str:
    text = text.strip()
    head, sep, tail = text.rpartition(" ")
    if sep and resolve_zone(tail):
        return head.rstrip()
    return text


def parse_http_date(text: Optional[str]) -> Optional[datetime]:
    """
    Returns a naive datetime, or None if the text matches none of the
    known formats.
    """
    if not text:
        return None
    text = strip_zone(text)
    for fmt in HTTP_DATE_FORMATS + RFC3339_FORMATS:
        try:
            ret = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return ret.replace(tzinfo=None)
    return None
