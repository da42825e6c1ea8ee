"""Time-stepped search for altitude-threshold crossings (rise and set events)."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from joblib import Parallel, cpu_count, delayed

from .astro import EphemerisOracle, NonFiniteSampleError, PositionSample
from .config import SearchConfig
from .culmination import Classification, estimate_culmination
from .diagnostics import (
    INCOMPLETE_SCAN,
    POST_SEARCH_AMBIGUITY,
    WINDOW_EXTENDED,
    DiagnosticChannel,
    Severity,
)
from .numeric import day_window, degrees_to_radians, interpolate, radians_to_degrees

__all__ = [
    "Always",
    "CrossingRequest",
    "CrossingSearch",
    "Direction",
    "EventOutcome",
    "Found",
    "NotFound",
    "ScanResult",
    "SearchState",
    "find_crossings",
    "find_crossings_batch",
]

LOGGER = logging.getLogger(__name__)


class Always(str, Enum):
    UP = "up"
    DOWN = "down"


class Direction(str, Enum):
    RISE = "rise"
    SET = "set"


@dataclass(frozen=True)
class EventOutcome:
    """Rise and set instants (Unix milliseconds) or an ``always`` classification."""

    rising: Optional[float]
    setting: Optional[float]
    always: Optional[Always]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "rising": self.rising,
            "setting": self.setting,
            "always": self.always.value if self.always is not None else None,
        }


@dataclass(frozen=True)
class Found:
    """A crossing refined to *instant*; *resume_at* is the first sample past it."""

    instant: float
    resume_at: float


@dataclass(frozen=True)
class NotFound:
    """The scan reached the end of the window without crossing."""

    last_instant: float


ScanResult = Union[Found, NotFound]


@dataclass
class SearchState:
    """Mutable state shared by every scan of a single search.

    ``upper`` and ``lower`` are running culmination bounds relative to the
    threshold: seeded from the analytic estimate, then widened by every
    sampled altitude.
    """

    threshold: float
    window_end: float
    upper: float
    lower: float
    instant: float = 0.0
    altitude: float = 0.0
    samples: int = 0

    def record(self, instant: float, altitude: float) -> None:
        self.instant = instant
        self.altitude = altitude
        self.samples += 1
        relative = altitude - self.threshold
        self.upper = max(self.upper, relative)
        self.lower = min(self.lower, relative)


def _wrong_side(direction: Direction, altitude: float, threshold: float) -> bool:
    if direction is Direction.RISE:
        return altitude < threshold
    return altitude > threshold


class CrossingSearch:
    """Rise/set search for one observer against one ephemeris oracle.

    The instance remembers a caller-selected reference time and timezone
    offset, used whenever :meth:`find_crossings` is called without them.
    """

    def __init__(
        self,
        oracle: EphemerisOracle,
        latitude_deg: float,
        longitude_deg: float,
        *,
        selected_time: Optional[float] = None,
        timezone_offset_ms: float = 0.0,
        config: Optional[SearchConfig] = None,
        diagnostics: Optional[DiagnosticChannel] = None,
    ) -> None:
        self.oracle = oracle
        self.latitude_rad = degrees_to_radians(latitude_deg)
        self.longitude_rad = degrees_to_radians(longitude_deg)
        self.selected_time = selected_time
        self.timezone_offset_ms = timezone_offset_ms
        self.config = config or SearchConfig()
        self.diagnostics = diagnostics or DiagnosticChannel()

    def sample_position(self, instant_ms: float) -> PositionSample:
        sample = self.oracle.sample_position(instant_ms, self.latitude_rad, self.longitude_rad)
        values = (sample.altitude, sample.azimuth, sample.declination, sample.right_ascension)
        if not all(math.isfinite(value) for value in values):
            raise NonFiniteSampleError(
                f"Oracle returned a non-finite position at instant {instant_ms}: {sample}"
            )
        return sample

    def threshold_deg(
        self, target_altitude_deg: float, use_limb: bool = False, use_refraction: bool = False
    ) -> float:
        """Altitude the body's center must cross, after limb and refraction corrections."""

        correction = 0.0
        if use_limb:
            correction += self.oracle.angular_radius_deg
        if use_refraction:
            correction += self.config.refraction_deg
        return target_altitude_deg - correction

    def find_crossings(
        self,
        target_altitude_deg: float,
        reference_instant: Optional[float] = None,
        timezone_offset_ms: Optional[float] = None,
        *,
        use_limb: bool = False,
        use_refraction: bool = False,
    ) -> EventOutcome:
        """Find when the body crosses *target_altitude_deg* on the local day.

        Parameters
        ----------
        target_altitude_deg:
            Threshold altitude in degrees before corrections.
        reference_instant:
            Any instant (Unix milliseconds) on the UTC day to search. Defaults
            to :attr:`selected_time`.
        timezone_offset_ms:
            Local time minus UTC. Defaults to :attr:`timezone_offset_ms`.
        use_limb, use_refraction:
            Lower the threshold by the body's angular radius and by the
            standard refraction constant, respectively.

        Returns
        -------
        EventOutcome
            Rise and set instants, or an ``always`` classification when the
            body does not cross the threshold.
        """

        reference = self.selected_time if reference_instant is None else reference_instant
        if reference is None:
            raise ValueError("reference_instant is required when no selected_time is set")
        offset = self.timezone_offset_ms if timezone_offset_ms is None else timezone_offset_ms

        threshold_deg = self.threshold_deg(target_altitude_deg, use_limb, use_refraction)
        threshold = degrees_to_radians(threshold_deg)
        start, end = day_window(reference, offset, self.config.day_ms)

        first = self.sample_position(start)
        estimate = estimate_culmination(
            first.declination,
            self.latitude_rad,
            -threshold,
            tolerance_rad=self.config.horizon_tolerance_rad,
            diagnostics=self.diagnostics,
        )
        if estimate.classification is Classification.UP:
            return EventOutcome(rising=None, setting=None, always=Always.UP)
        if estimate.classification is Classification.DOWN:
            return EventOutcome(rising=None, setting=None, always=Always.DOWN)

        state = SearchState(
            threshold=threshold,
            window_end=end,
            upper=estimate.upper,
            lower=estimate.lower,
        )
        state.record(start, first.altitude)
        going_up = self._altitude(state, start + self.config.half_step_ms) > first.altitude
        LOGGER.debug(
            json.dumps(
                {
                    "event": "search_started",
                    "start": start,
                    "end": end,
                    "threshold_deg": threshold_deg,
                    "altitude_deg": radians_to_degrees(first.altitude),
                    "going_up": going_up,
                }
            )
        )

        if first.altitude >= threshold:
            outcome = self._search_from_up(state, start)
        else:
            outcome = self._search_from_down(state, start)

        if outcome.rising is None and outcome.setting is None:
            outcome = self._disambiguate(state, outcome)

        LOGGER.debug(
            json.dumps({"event": "search_finished", "samples": state.samples, **outcome.as_dict()})
        )
        return outcome

    def _altitude(self, state: SearchState, instant: float) -> float:
        altitude = self.sample_position(instant).altitude
        state.record(instant, altitude)
        return altitude

    def _scan(self, state: SearchState, start: float, direction: Direction) -> ScanResult:
        """Step forward from *start* until the threshold is crossed in *direction*.

        The crossing time is interpolated as a linear function of altitude
        between the two samples that straddle the threshold.
        """

        step = self.config.step_ms
        instant = start
        altitude = self._altitude(state, instant)
        previous = None
        while _wrong_side(direction, altitude, state.threshold) and instant < state.window_end:
            previous = (instant, altitude)
            instant = min(instant + step, state.window_end)
            altitude = self._altitude(state, instant)

        if _wrong_side(direction, altitude, state.threshold):
            self.diagnostics.emit(
                Severity.INFO,
                INCOMPLETE_SCAN,
                f"No {direction.value} before the end of the search window",
                start=start,
                window_end=state.window_end,
            )
            return NotFound(last_instant=instant)
        if previous is None:
            # Crossing sits on the first sample; resume past it.
            return Found(instant=instant, resume_at=min(instant + step, state.window_end))

        previous_instant, previous_altitude = previous
        crossing = interpolate(previous_altitude, previous_instant, altitude, instant, state.threshold)
        return Found(instant=crossing, resume_at=instant)

    def _extend_window(self, state: SearchState, event: Found, direction: Direction) -> None:
        new_end = event.instant + self.config.day_ms
        self.diagnostics.emit(
            Severity.INFO,
            WINDOW_EXTENDED,
            f"Extending the search window one day past the {direction.value}",
            event=event.instant,
            previous_end=state.window_end,
            window_end=new_end,
        )
        state.window_end = new_end

    def _search_from_up(self, state: SearchState, start: float) -> EventOutcome:
        first_set = self._scan(state, start, Direction.SET)
        if isinstance(first_set, NotFound):
            return EventOutcome(rising=None, setting=None, always=Always.UP)

        self._extend_window(state, first_set, Direction.SET)
        rise = self._scan(state, first_set.resume_at, Direction.RISE)
        if isinstance(rise, NotFound):
            return EventOutcome(rising=None, setting=first_set.instant, always=Always.DOWN)

        self._extend_window(state, rise, Direction.RISE)
        second_set = self._scan(state, rise.resume_at, Direction.SET)
        if isinstance(second_set, NotFound):
            return EventOutcome(rising=rise.instant, setting=None, always=Always.UP)
        return EventOutcome(rising=rise.instant, setting=second_set.instant, always=None)

    def _search_from_down(self, state: SearchState, start: float) -> EventOutcome:
        rise = self._scan(state, start, Direction.RISE)
        if isinstance(rise, NotFound):
            return EventOutcome(rising=None, setting=None, always=Always.DOWN)

        self._extend_window(state, rise, Direction.RISE)
        setting = self._scan(state, rise.resume_at, Direction.SET)
        if isinstance(setting, NotFound):
            return EventOutcome(rising=rise.instant, setting=None, always=Always.UP)
        return EventOutcome(rising=rise.instant, setting=setting.instant, always=None)

    def _disambiguate(self, state: SearchState, outcome: EventOutcome) -> EventOutcome:
        # Comparable bounds near zero can pick the wrong side; accepted imprecision.
        resolved = Always.DOWN if abs(state.upper) < abs(state.lower) else Always.UP
        self.diagnostics.emit(
            Severity.WARNING,
            POST_SEARCH_AMBIGUITY,
            f"Unclassified day without crossings; resolved as always {resolved.value}",
            upper_deg=radians_to_degrees(state.upper),
            lower_deg=radians_to_degrees(state.lower),
            scan_result=outcome.always.value if outcome.always is not None else None,
        )
        return EventOutcome(rising=None, setting=None, always=resolved)


def find_crossings(
    oracle: EphemerisOracle,
    latitude_deg: float,
    longitude_deg: float,
    target_altitude_deg: float,
    reference_instant: float,
    timezone_offset_ms: float = 0.0,
    *,
    use_limb: bool = False,
    use_refraction: bool = False,
    config: Optional[SearchConfig] = None,
    diagnostics: Optional[DiagnosticChannel] = None,
) -> EventOutcome:
    """One-shot wrapper around :meth:`CrossingSearch.find_crossings`."""

    search = CrossingSearch(
        oracle,
        latitude_deg,
        longitude_deg,
        config=config,
        diagnostics=diagnostics,
    )
    return search.find_crossings(
        target_altitude_deg,
        reference_instant,
        timezone_offset_ms,
        use_limb=use_limb,
        use_refraction=use_refraction,
    )


@dataclass(frozen=True)
class CrossingRequest:
    """Arguments of one independent search in a batch."""

    oracle: EphemerisOracle
    latitude_deg: float
    longitude_deg: float
    target_altitude_deg: float
    reference_instant: float
    timezone_offset_ms: float = 0.0
    use_limb: bool = False
    use_refraction: bool = False


def _solve_request(request: CrossingRequest, config: Optional[SearchConfig]) -> EventOutcome:
    return find_crossings(
        request.oracle,
        request.latitude_deg,
        request.longitude_deg,
        request.target_altitude_deg,
        request.reference_instant,
        request.timezone_offset_ms,
        use_limb=request.use_limb,
        use_refraction=request.use_refraction,
        config=config,
    )


def find_crossings_batch(
    requests: Iterable[CrossingRequest],
    n_jobs: Optional[int] = None,
    config: Optional[SearchConfig] = None,
    prefer: str = "processes",
) -> List[EventOutcome]:
    """Run independent searches in parallel, preserving input order.

    Oracles are shipped to the workers with their requests, so they must be
    picklable when ``prefer="processes"``. Diagnostics are only logged.
    """

    tasks = list(requests)
    if not tasks:
        return []

    if n_jobs is None:
        n_jobs = max(1, min(cpu_count(), len(tasks)))

    if n_jobs == 1:
        return [_solve_request(task, config) for task in tasks]

    return list(
        Parallel(n_jobs=n_jobs, prefer=prefer)(
            delayed(_solve_request)(task, config) for task in tasks
        )
    )
