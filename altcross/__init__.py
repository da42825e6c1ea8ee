"""Rise/set and altitude-crossing search for the Sun."""

from .astro import (
    EphemerisError,
    ErfaSunOracle,
    NonFiniteSampleError,
    PositionSample,
    SpiceSunOracle,
    load_ephemeris,
)
from .config import SearchConfig
from .coords import equatorial_to_horizontal, hour_angle_to_horizontal, julian_date
from .culmination import Classification, CulminationEstimate, estimate_culmination
from .diagnostics import Diagnostic, DiagnosticChannel, Severity
from .search import (
    Always,
    CrossingRequest,
    CrossingSearch,
    EventOutcome,
    find_crossings,
    find_crossings_batch,
)

__all__ = [
    "Always",
    "Classification",
    "CrossingRequest",
    "CrossingSearch",
    "CulminationEstimate",
    "Diagnostic",
    "DiagnosticChannel",
    "EphemerisError",
    "ErfaSunOracle",
    "EventOutcome",
    "NonFiniteSampleError",
    "PositionSample",
    "SearchConfig",
    "Severity",
    "SpiceSunOracle",
    "equatorial_to_horizontal",
    "estimate_culmination",
    "find_crossings",
    "find_crossings_batch",
    "hour_angle_to_horizontal",
    "julian_date",
    "load_ephemeris",
]
