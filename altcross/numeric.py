"""Small numeric helpers shared by the estimator and the crossing search."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Tuple

__all__ = [
    "ARCSEC",
    "DAY_MS",
    "datetime_to_instant",
    "day_window",
    "degrees_to_radians",
    "instant_to_datetime",
    "interpolate",
    "radians_to_degrees",
]

DAY_MS = 86_400_000
ARCSEC = math.pi / (180.0 * 3600.0)


def degrees_to_radians(value: float) -> float:
    return value * math.pi / 180.0


def radians_to_degrees(value: float) -> float:
    return value * 180.0 / math.pi


def interpolate(x0: float, y0: float, x1: float, y1: float, x: float) -> float:
    """Return ``y`` at ``x`` on the line through ``(x0, y0)`` and ``(x1, y1)``."""

    return y0 + (x - x0) * (y1 - y0) / (x1 - x0)


def day_window(
    reference_ms: float, timezone_offset_ms: float, day_ms: int = DAY_MS
) -> Tuple[float, float]:
    """Return the ``(start, end)`` instants of the local day around *reference_ms*.

    The day is anchored on the UTC calendar day containing the reference
    instant and shifted by the timezone offset (local minus UTC). The end is
    one millisecond before the next start.
    """

    start = reference_ms - (reference_ms % day_ms) - timezone_offset_ms
    return start, start + day_ms - 1


def datetime_to_instant(dt: datetime) -> float:
    """Convert a timezone-aware datetime to milliseconds since the Unix epoch."""

    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.timestamp() * 1000.0


def instant_to_datetime(instant_ms: float) -> datetime:
    return datetime.fromtimestamp(instant_ms / 1000.0, tz=UTC)
