from __future__ import annotations

import math
import re
from typing import Any


# Balances at or below this are settled
EPSILON = 0.0001

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_WS_RE = re.compile(r"\s+")


class ValidationError(ValueError):
    """400-level input problem (malformed payload, missing shopId)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConflictError(ValueError):
    """409-level business rule conflict; details let the caller retry with corrected input."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level: nothing matched the caller's selector."""


# Device payloads are duck-typed: every field may be missing, null, a number
# or a string. These helpers coerce without raising.

def to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def trim(value: Any) -> str:
    return to_str(value).strip()


def first_non_empty(*values: Any) -> str:
    for value in values:
        s = trim(value)
        if s:
            return s
    return ""


def to_int(value: Any, default: int = 0) -> int:
    """Leading-integer parse: 12 -> 12, "12.7" -> 12, "7pcs" -> 7, junk -> default."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return default
        return int(value)
    m = _LEADING_INT_RE.match(to_str(value))
    if not m:
        return default
    return int(m.group(1))


def to_num(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(n):
        return default
    return n


def round2(value: float) -> float:
    return round(value + 0.0, 2)


def norm_name(value: Any) -> str:
    """trim, lowercase, collapse internal whitespace"""
    return _WS_RE.sub(" ", trim(value).lower())


def norm_phone(value: Any) -> str:
    return _WS_RE.sub("", trim(value))

