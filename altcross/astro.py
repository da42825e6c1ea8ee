"""Ephemeris oracles returning apparent Sun positions for an observer."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import List, Optional, Protocol, Tuple

import erfa
import numpy as np
import spiceypy as spice
from spiceypy.utils.exceptions import SpiceyError

from .coords import hour_angle_to_horizontal
from .numeric import instant_to_datetime

__all__ = [
    "EphemerisError",
    "EphemerisOracle",
    "ErfaSunOracle",
    "NonFiniteSampleError",
    "PositionSample",
    "SUN_ANGULAR_RADIUS_DEG",
    "SpiceSunOracle",
    "load_ephemeris",
    "loaded_kernels",
    "unload_ephemeris",
]

LOGGER = logging.getLogger(__name__)

SUN_ANGULAR_RADIUS_DEG = 0.27

_LOADED_FILES: Optional[List[str]] = None
_LOAD_LOCK = Lock()


class EphemerisError(RuntimeError):
    """Raised when ephemeris loading or computation fails."""


class NonFiniteSampleError(EphemerisError):
    """Raised when an oracle returns NaN or infinite coordinates."""


@dataclass(frozen=True)
class PositionSample:
    """Apparent position of the body at one instant, all angles in radians."""

    altitude: float
    azimuth: float
    declination: float
    right_ascension: float


class EphemerisOracle(Protocol):
    angular_radius_deg: float

    def sample_position(
        self, instant_ms: float, latitude_rad: float, longitude_rad: float
    ) -> PositionSample:
        ...


@dataclass(frozen=True)
class _TimeScales:
    """Container for time-scale representations of a UTC instant."""

    utc: Tuple[float, float]
    ut1: Tuple[float, float]
    tt: Tuple[float, float]
    et: float


def _instant_to_timescales(instant_ms: float) -> _TimeScales:
    dt = instant_to_datetime(instant_ms)
    utc1, utc2 = erfa.dtf2d(
        "UTC",
        dt.year,
        dt.month,
        dt.day,
        dt.hour,
        dt.minute,
        dt.second + dt.microsecond / 1_000_000,
    )
    tai1, tai2 = erfa.utctai(utc1, utc2)
    tt1, tt2 = erfa.taitt(tai1, tai2)
    ut11, ut12 = erfa.utcut1(utc1, utc2, 0.0)
    et = (tt1 - erfa.DJ00) * erfa.DAYSEC + tt2 * erfa.DAYSEC
    return _TimeScales(utc=(utc1, utc2), ut1=(ut11, ut12), tt=(tt1, tt2), et=et)


def _apparent_sample(
    gcrs_vector: np.ndarray,
    times: _TimeScales,
    latitude_rad: float,
    longitude_rad: float,
) -> PositionSample:
    """Reduce a geocentric GCRS vector to equatorial-of-date and horizontal angles."""

    rnpb = np.array(erfa.pnm06a(*times.tt), dtype=float)
    of_date = rnpb @ np.asarray(gcrs_vector, dtype=float)
    ra, dec = erfa.c2s(of_date)
    ra = float(erfa.anp(ra))
    dec = float(dec)
    gst = float(erfa.gst06a(*times.ut1, *times.tt))
    altitude, azimuth = hour_angle_to_horizontal(gst + longitude_rad - ra, dec, latitude_rad)
    return PositionSample(
        altitude=altitude,
        azimuth=azimuth,
        declination=dec,
        right_ascension=ra,
    )


class ErfaSunOracle:
    """Geocentric Sun from the ERFA analytic Earth ephemeris (``epv00``).

    Accurate to a few arcseconds, which is far below what a 40 second scan
    step resolves. Parallax and aberration are not applied.
    """

    angular_radius_deg = SUN_ANGULAR_RADIUS_DEG

    def sample_position(
        self, instant_ms: float, latitude_rad: float, longitude_rad: float
    ) -> PositionSample:
        times = _instant_to_timescales(instant_ms)
        pvh, _ = erfa.epv00(*times.tt)
        sun = -np.array(pvh["p"], dtype=float)
        return _apparent_sample(sun, times, latitude_rad, longitude_rad)


class SpiceSunOracle:
    """Sun vector from loaded SPK kernels, corrected for light time and aberration."""

    angular_radius_deg = SUN_ANGULAR_RADIUS_DEG

    def __init__(self, kernel_dir: Optional[str] = None) -> None:
        self.kernel_dir = kernel_dir

    def _ensure_loaded(self) -> None:
        if _LOADED_FILES is not None:
            return
        if self.kernel_dir is None:
            raise EphemerisError("Ephemeris kernels have not been loaded")
        load_ephemeris(self.kernel_dir)

    def sample_position(
        self, instant_ms: float, latitude_rad: float, longitude_rad: float
    ) -> PositionSample:
        self._ensure_loaded()
        times = _instant_to_timescales(instant_ms)
        try:
            sun_vector, _ = spice.spkpos("SUN", times.et, "J2000", "LT+S", "EARTH")
        except SpiceyError as exc:
            raise EphemerisError(f"SPICE lookup failed: {exc}") from exc
        return _apparent_sample(
            np.array(sun_vector, dtype=float), times, latitude_rad, longitude_rad
        )


def load_ephemeris(bsp_dir: str) -> List[str]:
    """Load all SPK kernels from *bsp_dir* using :mod:`spiceypy`.

    Parameters
    ----------
    bsp_dir:
        Directory containing one or more ``.bsp`` files, or a single file.

    Returns
    -------
    list[str]
        Sorted list of loaded kernel file names.

    Raises
    ------
    EphemerisError
        If the path is missing or contains no ``.bsp`` files.
    """

    global _LOADED_FILES

    if _LOADED_FILES is not None:
        return _LOADED_FILES

    path = Path(bsp_dir).expanduser()
    if path.is_file() and path.suffix.lower() == ".bsp":
        bsp_files = [path]
    elif path.is_dir():
        bsp_files = sorted(
            file for file in path.iterdir() if file.is_file() and file.suffix.lower() == ".bsp"
        )
    else:
        raise EphemerisError(f"Ephemeris path not found: {path}")
    if not bsp_files:
        raise EphemerisError(f"No .bsp ephemeris files found in directory: {path}")

    with _LOAD_LOCK:
        if _LOADED_FILES is not None:
            return _LOADED_FILES

        loaded: List[str] = []
        for bsp_file in bsp_files:
            try:
                spice.furnsh(str(bsp_file))
            except SpiceyError as exc:
                spice.kclear()
                raise EphemerisError(
                    f"Failed to load ephemeris file '{bsp_file}': {exc}"
                ) from exc
            loaded.append(bsp_file.name)

        _LOADED_FILES = loaded
        LOGGER.info(json.dumps({"event": "ephemeris_loaded", "files": loaded}))
        return loaded


def loaded_kernels() -> List[str]:
    return list(_LOADED_FILES or [])


def unload_ephemeris() -> None:
    """Unload every kernel so the next :func:`load_ephemeris` starts fresh."""

    global _LOADED_FILES

    with _LOAD_LOCK:
        spice.kclear()
        _LOADED_FILES = None
