"""Value helpers for building optional fields in request/response payloads.

Python values are already references, so string/boolean/integer only hand
back a copy coerced to the field type. time() is the lenient RFC 3339
parser: malformed input yields ZERO_TIME instead of an error. New code
should prefer parse_time(), which raises.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

# Zero value of a timestamp: 0001-01-01T00:00:00Z
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

# RFC 3339 date-time: YYYY-MM-DDTHH:MM:SS, optional fraction, mandatory offset
_RFC3339_PATTERN = re.compile(
    r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


def string(s: str) -> str:
    return str(s)


def boolean(b: bool) -> bool:
    return bool(b)


def integer(i: int) -> int:
    return int(i)


def parse_time(s: str) -> datetime:
    """Parse a strict RFC 3339 timestamp into an aware datetime.

    Fractions finer than microseconds are truncated.

    Raises:
        ValueError: If s is not a valid RFC 3339 date-time.
    """
    match = _RFC3339_PATTERN.fullmatch(s)
    if match is None:
        raise ValueError(f"not an RFC 3339 timestamp: {s!r}")

    base, fraction, offset = match.groups()
    if offset == "Z":
        offset = "+00:00"
    micros = (fraction or "").ljust(6, "0")[:6]
    return datetime.fromisoformat(f"{base}.{micros}{offset}")


def time(s: str) -> datetime:
    """Parse an RFC 3339 timestamp, returning ZERO_TIME if it is malformed."""
    try:
        return parse_time(s)
    except ValueError:
        return ZERO_TIME
