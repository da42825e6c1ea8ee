"""Coordinate conversions between equatorial and horizontal frames.

These are standalone helpers for callers holding their own RA/Dec, such as
catalogue coordinates. The oracles in :mod:`altcross.astro` do their own
reduction and do not go through them.
"""

from __future__ import annotations

from typing import Tuple

import erfa

__all__ = ["equatorial_to_horizontal", "hour_angle_to_horizontal", "julian_date"]

UNIX_EPOCH_JD = 2440587.5


def julian_date(instant_ms: float) -> float:
    """Julian date (UTC based) of an instant given in Unix milliseconds."""

    return instant_ms / 86_400_000.0 + UNIX_EPOCH_JD


def hour_angle_to_horizontal(
    hour_angle: float, declination: float, latitude: float
) -> Tuple[float, float]:
    """Return ``(altitude, azimuth)`` in radians, azimuth measured from north through east."""

    azimuth, altitude = erfa.hd2ae(hour_angle, declination, latitude)
    return float(altitude), float(azimuth)


def equatorial_to_horizontal(
    right_ascension: float,
    declination: float,
    latitude: float,
    longitude: float,
    instant_ms: float,
) -> Tuple[float, float]:
    """Convert RA/Dec to ``(altitude, azimuth)`` using Greenwich mean sidereal time.

    UT1 is approximated by UTC, which is good to about a second of time.
    """

    gmst = erfa.gmst82(julian_date(instant_ms), 0.0)
    hour_angle = gmst + longitude - right_ascension
    return hour_angle_to_horizontal(hour_angle, declination, latitude)
