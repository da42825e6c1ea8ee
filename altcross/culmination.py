"""Analytic meridian-altitude estimate used to short-circuit the search."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .diagnostics import NEAR_HORIZON_CULMINATION, DiagnosticChannel, Severity
from .numeric import ARCSEC, radians_to_degrees

__all__ = ["Classification", "CulminationEstimate", "estimate_culmination"]

HALF_PI = math.pi / 2.0


class Classification(str, Enum):
    UP = "up"
    DOWN = "down"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class CulminationEstimate:
    """Upper and lower meridian altitudes relative to the threshold, in radians."""

    upper: float
    lower: float
    classification: Classification


def estimate_culmination(
    declination_rad: float,
    latitude_rad: float,
    offset_rad: float,
    tolerance_rad: float = 2.0 * ARCSEC,
    diagnostics: Optional[DiagnosticChannel] = None,
) -> CulminationEstimate:
    """Classify a day from the body's declination and the observer latitude.

    Parameters
    ----------
    declination_rad, latitude_rad:
        Body declination and observer latitude.
    offset_rad:
        Added to both culminations. Passing the negated threshold altitude
        measures the culminations relative to that threshold.
    tolerance_rad:
        Culminations closer than this to zero are not trusted to produce a
        clean sign change and collapse to an ``always`` classification.

    Returns
    -------
    CulminationEstimate
        ``UP`` when the lower culmination is above zero, ``DOWN`` when the
        upper culmination is below zero, otherwise ``UNCLASSIFIED``.
    """

    upper = HALF_PI - abs(latitude_rad - declination_rad) + offset_rad
    lower = -HALF_PI + abs(latitude_rad + declination_rad) + offset_rad

    if lower > 0:
        classification = Classification.UP
    elif upper < 0:
        classification = Classification.DOWN
    else:
        classification = Classification.UNCLASSIFIED

    if classification is Classification.UNCLASSIFIED:
        forced: Optional[Classification] = None
        if abs(upper) < tolerance_rad:
            forced = Classification.DOWN
        elif abs(lower) < tolerance_rad:
            forced = Classification.UP
        if forced is not None:
            if diagnostics is not None:
                diagnostics.emit(
                    Severity.WARNING,
                    NEAR_HORIZON_CULMINATION,
                    "Culmination within tolerance of the threshold; "
                    f"treating the body as always {forced.value}",
                    upper_deg=radians_to_degrees(upper),
                    lower_deg=radians_to_degrees(lower),
                    tolerance_arcsec=tolerance_rad / ARCSEC,
                )
            classification = forced

    return CulminationEstimate(upper=upper, lower=lower, classification=classification)
