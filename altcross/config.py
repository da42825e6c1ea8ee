"""Tunable constants of the crossing search."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .numeric import ARCSEC, DAY_MS

__all__ = ["DEFAULT_REFRACTION_DEG", "DEFAULT_STEP_MS", "SearchConfig"]

DEFAULT_STEP_MS = 40_000
DEFAULT_REFRACTION_DEG = 0.5667  # Standard horizontal refraction.


@dataclass(frozen=True)
class SearchConfig:
    """Parameters shared by every scan of one search.

    ``step_ms`` is a sampling interval, not a physical constant: smaller
    steps cost more oracle queries and buy little, since each bracketed
    crossing is refined by interpolation.
    """

    step_ms: int = DEFAULT_STEP_MS
    day_ms: int = DAY_MS
    horizon_tolerance_rad: float = 2.0 * ARCSEC
    refraction_deg: float = DEFAULT_REFRACTION_DEG

    def __post_init__(self) -> None:
        if self.step_ms <= 0:
            raise ValueError(f"step_ms must be positive, got {self.step_ms}")
        if self.day_ms <= self.step_ms:
            raise ValueError("day_ms must be larger than step_ms")

    @property
    def half_step_ms(self) -> float:
        return self.step_ms / 2

    @classmethod
    def from_env(cls) -> "SearchConfig":
        """Build a configuration from ``ALTCROSS_*`` environment variables."""

        step_seconds = os.environ.get("ALTCROSS_STEP_SECONDS")
        refraction = os.environ.get("ALTCROSS_REFRACTION_DEG")
        kwargs = {}
        if step_seconds:
            kwargs["step_ms"] = int(round(float(step_seconds) * 1000.0))
        if refraction:
            kwargs["refraction_deg"] = float(refraction)
        return cls(**kwargs)
