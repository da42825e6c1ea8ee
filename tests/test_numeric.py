from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from altcross.config import SearchConfig
from altcross.diagnostics import DiagnosticChannel, Severity
from altcross.numeric import (
    DAY_MS,
    datetime_to_instant,
    day_window,
    instant_to_datetime,
    interpolate,
)
from conftest import utc_ms


def test_interpolate_treats_first_coordinate_as_independent():
    assert interpolate(-0.02, 1_000.0, 0.02, 2_000.0, 0.0) == pytest.approx(1_500.0)
    assert interpolate(1.0, 10.0, 3.0, 30.0, 2.5) == pytest.approx(25.0)


def test_day_window_without_offset():
    midnight = utc_ms(2025, 10, 21)
    start, end = day_window(midnight + 15 * 3_600_000, 0.0)
    assert start == midnight
    assert end == midnight + DAY_MS - 1


def test_day_window_shifts_by_offset():
    midnight = utc_ms(2025, 10, 21)
    start, end = day_window(midnight + 1, 8 * 3_600_000)
    assert start == midnight - 8 * 3_600_000
    assert end - start == DAY_MS - 1


def test_day_window_before_the_epoch():
    start, _ = day_window(-1.0, 0.0)
    assert start == -DAY_MS


def test_datetime_round_trip_and_naive_rejection():
    dt = datetime(2025, 6, 21, 4, 30, tzinfo=timezone(timedelta(hours=1)))
    instant = datetime_to_instant(dt)
    assert instant == utc_ms(2025, 6, 21, 3, 30)
    assert instant_to_datetime(instant) == dt
    with pytest.raises(ValueError):
        datetime_to_instant(datetime(2025, 6, 21))


def test_config_defaults_and_env(monkeypatch: pytest.MonkeyPatch):
    config = SearchConfig()
    assert config.step_ms == 40_000
    assert config.half_step_ms == 20_000
    assert config.refraction_deg == pytest.approx(0.5667)

    monkeypatch.setenv("ALTCROSS_STEP_SECONDS", "30")
    monkeypatch.setenv("ALTCROSS_REFRACTION_DEG", "0.6")
    config = SearchConfig.from_env()
    assert config.step_ms == 30_000
    assert config.refraction_deg == pytest.approx(0.6)


@pytest.mark.parametrize("value", ["0", "0.0001", "abc"])
def test_config_rejects_bad_step(monkeypatch: pytest.MonkeyPatch, value: str):
    monkeypatch.setenv("ALTCROSS_STEP_SECONDS", value)
    with pytest.raises(ValueError):
        SearchConfig.from_env()


def test_diagnostic_channel_isolates_failing_subscribers():
    channel = DiagnosticChannel()
    received = []

    def broken(diagnostic):
        raise RuntimeError("subscriber bug")

    channel.subscribe(broken)
    unsubscribe = channel.subscribe(received.append)
    diagnostic = channel.emit(Severity.INFO, "window_extended", "extended", window_end=5)
    assert received == [diagnostic]
    assert diagnostic.as_dict()["window_end"] == 5

    unsubscribe()
    channel.emit(Severity.WARNING, "post_search_ambiguity", "ambiguous")
    assert len(received) == 1
