from __future__ import annotations

import re
import time
from datetime import date, datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

"""
Time semantics (authoritative)

- Document rows carry epoch milliseconds (createdAt, updatedAt); devices
  compare them against the `since` cursor they received as serverTime.
- Database columns are UTC-naive datetimes, serialized with a trailing 'Z'.
- Expiry dates are calendar dates; "today" is taken in the configured zone.
"""

_YMD_COMPACT_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def now_ms() -> int:
    return int(time.time() * 1000)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def zone_for(tz_name: Optional[str]):
    """IANA zone by name; unknown or empty names fall back to UTC."""
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def today_in(tz_name: str) -> date:
    """Calendar date in the given IANA zone."""
    return datetime.now(zone_for(tz_name)).date()


def _safe_date(y: str, m: str, d: str) -> Optional[date]:
    try:
        return date(int(y), int(m), int(d))
    except ValueError:
        return None


def parse_expiry(value: Any, tz_name: Optional[str] = None) -> Optional[date]:
    """
    Parse an expiry value written by any device generation.

    Accepts:
    - epoch milliseconds (int/float, or a digit string of 10+ chars), read as
      a calendar date in tz_name so it compares with today_in(tz_name)
    - "YYYYMMDD" (Android local storage)
    - "YYYY-MM-DD"
    - ISO-8601 datetimes ("...Z" or offsets), also shifted into tz_name
    Returns None for empty or unparseable input.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=zone_for(tz_name)).date()
        except (OverflowError, OSError, ValueError):
            return None

    s = str(value).strip()
    if not s:
        return None

    m = _YMD_COMPACT_RE.match(s)
    if m:
        return _safe_date(*m.groups())

    m = _YMD_RE.match(s)
    if m:
        return _safe_date(*m.groups())

    if s.isdigit() and len(s) >= 10:
        return parse_expiry(int(s), tz_name)

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(zone_for(tz_name))
    return dt.date()
