"""FastAPI application exposing Sun altitude-crossing searches."""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime, time as dt_time, timedelta, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from altcross.astro import (
    EphemerisError,
    EphemerisOracle,
    ErfaSunOracle,
    SpiceSunOracle,
    load_ephemeris,
)
from altcross.config import SearchConfig
from altcross.coords import julian_date
from altcross.ephemeris import EphemerisAcquisitionError, resolve_ephemeris_source
from altcross.numeric import (
    datetime_to_instant,
    instant_to_datetime,
    radians_to_degrees,
)
from altcross.search import CrossingSearch
from models import (
    CrossingQueryParams,
    CrossingResponse,
    ErrorResponse,
    HealthResponse,
    PositionQueryParams,
    PositionResponse,
)

logging.basicConfig(level=logging.INFO, format="%(message)s")
LOGGER = logging.getLogger("crossing-api")

APP_DESCRIPTION = "Times at which the Sun crosses a chosen altitude, with polar-day handling"

ORACLE_KIND = "erfa"
ORACLE: EphemerisOracle = ErfaSunOracle()
EPHEMERIS_FILES: List[str] = []
SEARCH_CONFIG = SearchConfig()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global ORACLE, ORACLE_KIND, EPHEMERIS_FILES, SEARCH_CONFIG
    try:
        SEARCH_CONFIG = SearchConfig.from_env()
    except ValueError as exc:
        LOGGER.error(json.dumps({"event": "config_invalid", "error": str(exc)}))
        raise
    if os.environ.get("ALTCROSS_ORACLE", "erfa").lower() == "spice":
        try:
            source_path = resolve_ephemeris_source()
            EPHEMERIS_FILES = load_ephemeris(str(source_path))
        except (EphemerisAcquisitionError, EphemerisError) as exc:
            LOGGER.error(json.dumps({"event": "ephemeris_load_failed", "error": str(exc)}))
            raise
        ORACLE = SpiceSunOracle(str(source_path))
        ORACLE_KIND = "spice"
    LOGGER.info(json.dumps({"event": "startup", "oracle": ORACLE_KIND, "files": EPHEMERIS_FILES, "step_ms": SEARCH_CONFIG.step_ms}))
    yield


app = FastAPI(
    title="Altcross API",
    description=APP_DESCRIPTION,
    version="1.0.0",
    lifespan=lifespan,
)


def _format_utc(instant: Optional[float]) -> Optional[str]:
    if instant is None:
        return None
    return instant_to_datetime(instant).isoformat().replace("+00:00", "Z")


def _format_local(instant: Optional[float], offset_hours: Optional[float]) -> Optional[str]:
    if instant is None or offset_hours is None:
        return None
    offset = timezone(timedelta(hours=offset_hours))
    return instant_to_datetime(instant).astimezone(offset).isoformat()


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    payload = ErrorResponse(code=code, error=message)
    LOGGER.error(json.dumps({"event": "error", "code": code, "message": message}))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = ", ".join(error["msg"] for error in exc.errors())
    return _error_response(422, "validation_error", messages)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled exception", exc_info=exc)
    return _error_response(500, "internal_error", "Unhandled server error")


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(ok=True, oracle=ORACLE_KIND, files=EPHEMERIS_FILES)


@app.get(
    "/crossings",
    response_model=CrossingResponse,
    responses={
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def crossings_endpoint(params: CrossingQueryParams = Depends()) -> CrossingResponse:
    start_time = time.perf_counter()
    offset_ms = (params.offset_hours or 0.0) * 3_600_000.0
    # Any instant on the UTC date anchors the same search window.
    reference = datetime_to_instant(
        datetime.combine(params.date_utc, dt_time(12, 0), tzinfo=UTC)
    )
    search = CrossingSearch(
        ORACLE,
        params.lat,
        params.lon,
        selected_time=reference,
        timezone_offset_ms=offset_ms,
        config=SEARCH_CONFIG,
    )
    try:
        outcome = search.find_crossings(
            params.altitude_deg,
            use_limb=params.use_limb,
            use_refraction=params.use_refraction,
        )
    except EphemerisError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    duration_ms = (time.perf_counter() - start_time) * 1000.0
    response = CrossingResponse(
        date_utc=params.date_utc,
        latitude=params.lat,
        longitude=params.lon,
        altitude_deg=params.altitude_deg,
        threshold_deg=search.threshold_deg(
            params.altitude_deg, params.use_limb, params.use_refraction
        ),
        always=outcome.always.value if outcome.always is not None else None,
        rising_utc=_format_utc(outcome.rising),
        setting_utc=_format_utc(outcome.setting),
        offset_hours=params.offset_hours,
        rising_local=_format_local(outcome.rising, params.offset_hours),
        setting_local=_format_local(outcome.setting, params.offset_hours),
        oracle=ORACLE_KIND,
    )

    LOGGER.info(
        json.dumps(
            {
                "event": "crossings",
                "lat": params.lat,
                "lon": params.lon,
                "date": params.date_utc.isoformat(),
                "altitude_deg": params.altitude_deg,
                "always": response.always,
                "duration_ms": round(duration_ms, 3),
            }
        )
    )
    return response


@app.get(
    "/position",
    response_model=PositionResponse,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def position_endpoint(params: PositionQueryParams = Depends()) -> PositionResponse:
    if params.time.tzinfo is None:
        raise HTTPException(status_code=400, detail="time must include a UTC offset")
    instant = datetime_to_instant(params.time)
    search = CrossingSearch(ORACLE, params.lat, params.lon)
    try:
        sample = search.sample_position(instant)
    except EphemerisError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return PositionResponse(
        time_utc=_format_utc(instant),
        julian_date=julian_date(instant),
        altitude_deg=radians_to_degrees(sample.altitude),
        azimuth_deg=radians_to_degrees(sample.azimuth),
        declination_deg=radians_to_degrees(sample.declination),
        right_ascension_deg=radians_to_degrees(sample.right_ascension),
    )
