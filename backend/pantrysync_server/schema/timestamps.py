"""Timestamp parsing and formatting shared by import and export."""

from __future__ import annotations

import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any

EPOCH_MS = 0
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Range of instants that format as four-digit-year ISO strings
MIN_TIMESTAMP_MS = -62_135_596_800_000
MAX_TIMESTAMP_MS = 253_402_300_799_999


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_timestamp(value: Any) -> int:
    """Parse a client-supplied timestamp into Unix milliseconds.

    Accepts datetime objects, ISO-8601 / date strings and epoch numbers
    (milliseconds). Anything missing or unparseable maps to the epoch so it
    can never overwrite newer stored data.
    """
    parsed = try_parse_timestamp(value)
    return EPOCH_MS if parsed is None else parsed


def try_parse_timestamp(value: Any) -> int | None:
    """Like parse_timestamp(), but None when the value is not a real instant."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (value - _EPOCH) // timedelta(milliseconds=1)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if not math.isfinite(value) or not MIN_TIMESTAMP_MS <= value <= MAX_TIMESTAMP_MS:
            return None
        return int(value)

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return (parsed - _EPOCH) // timedelta(milliseconds=1)

    return None


def format_timestamp(ms: int | None) -> str | None:
    """Format Unix milliseconds as ISO-8601 UTC with a trailing Z."""
    if ms is None:
        return None
    dt = _EPOCH + timedelta(milliseconds=ms)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
