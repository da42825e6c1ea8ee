from __future__ import annotations

import math
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import erfa
import numpy as np
import pytest
import spiceypy as spice

from altcross.astro import PositionSample, unload_ephemeris
from altcross.numeric import DAY_MS

AU_KM = 149597870.700
STEP_HOURS = 6


class ConstantDeclinationOracle:
    """Body on a circle of fixed declination, transiting at 12:00 UTC at longitude 0.

    ``declination_rate`` (radians per millisecond, relative to
    ``reference_ms``) lets the declination drift for polar-transition cases.
    """

    angular_radius_deg = 0.27

    def __init__(
        self,
        declination_deg: float,
        declination_rate: float = 0.0,
        reference_ms: float = 0.0,
    ) -> None:
        self.declination = math.radians(declination_deg)
        self.declination_rate = declination_rate
        self.reference_ms = reference_ms
        self.queries = 0

    def declination_at(self, instant_ms: float) -> float:
        return self.declination + self.declination_rate * (instant_ms - self.reference_ms)

    def hour_angle(self, instant_ms: float, longitude_rad: float) -> float:
        return 2.0 * math.pi * (instant_ms / DAY_MS - 0.5) + longitude_rad

    def sample_position(
        self, instant_ms: float, latitude_rad: float, longitude_rad: float
    ) -> PositionSample:
        self.queries += 1
        dec = self.declination_at(instant_ms)
        hour_angle = self.hour_angle(instant_ms, longitude_rad)
        sin_alt = math.sin(latitude_rad) * math.sin(dec) + math.cos(latitude_rad) * math.cos(
            dec
        ) * math.cos(hour_angle)
        altitude = math.asin(max(-1.0, min(1.0, sin_alt)))
        return PositionSample(
            altitude=altitude, azimuth=0.0, declination=dec, right_ascension=0.0
        )


class FixedAltitudeOracle:
    """Reports a constant altitude together with an arbitrary declination."""

    angular_radius_deg = 0.27

    def __init__(self, altitude_deg: float, declination_deg: float) -> None:
        self.altitude = math.radians(altitude_deg)
        self.declination = math.radians(declination_deg)

    def sample_position(
        self, instant_ms: float, latitude_rad: float, longitude_rad: float
    ) -> PositionSample:
        return PositionSample(
            altitude=self.altitude,
            azimuth=0.0,
            declination=self.declination,
            right_ascension=0.0,
        )


def utc_ms(*args: int) -> float:
    return datetime(*args, tzinfo=timezone.utc).timestamp() * 1000.0


def _datetime_to_tt(dt: datetime) -> tuple[float, float]:
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
    return erfa.taitt(tai1, tai2)


def _datetime_to_et(dt: datetime) -> float:
    tt1, tt2 = _datetime_to_tt(dt)
    return (tt1 - erfa.DJ00) * erfa.DAYSEC + tt2 * erfa.DAYSEC


def _sun_and_earth_states(dt: datetime) -> tuple[np.ndarray, np.ndarray]:
    tt1, tt2 = _datetime_to_tt(dt)
    pvh, pvb = erfa.epv00(tt1, tt2)
    sun_state = np.concatenate(
        [-np.array(pvh["p"]) * AU_KM, -np.array(pvh["v"]) * (AU_KM / erfa.DAYSEC)]
    )
    earth_state = np.concatenate(
        [np.array(pvb["p"]) * AU_KM, np.array(pvb["v"]) * (AU_KM / erfa.DAYSEC)]
    )
    return sun_state, earth_state


def _generate_test_kernel(output: Path) -> None:
    """Write a small SPK covering 2025 with the Sun (10) and Earth (399) from ERFA."""

    start = datetime(2025, 1, 1, tzinfo=timezone.utc)
    end = datetime(2026, 1, 1, tzinfo=timezone.utc)
    sun_states: list[np.ndarray] = []
    earth_states: list[np.ndarray] = []
    ets: list[float] = []
    current = start
    while current <= end:
        sun_state, earth_state = _sun_and_earth_states(current)
        sun_states.append(sun_state)
        earth_states.append(earth_state)
        ets.append(_datetime_to_et(current))
        current += timedelta(hours=STEP_HOURS)
    step_seconds = ets[1] - ets[0]
    handle = spice.spkopn(str(output), "SUNTEST", 0)
    try:
        for body, center, name, states in (
            (10, 399, "SUNTEST", sun_states),
            (399, 0, "EARTHTEST", earth_states),
        ):
            spice.spkw08(
                handle,
                body,
                center,
                "J2000",
                ets[0],
                ets[-1],
                name,
                7,
                len(ets),
                np.array(states, dtype=float),
                ets[0],
                step_seconds,
            )
    finally:
        spice.spkcls(handle)


@pytest.fixture(scope="session")
def kernel_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    directory = tmp_path_factory.mktemp("kernels")
    _generate_test_kernel(directory / "sun_2025.bsp")
    return directory


@pytest.fixture
def clean_spice() -> Iterable[None]:
    unload_ephemeris()
    yield
    unload_ephemeris()
