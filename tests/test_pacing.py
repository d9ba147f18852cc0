from __future__ import annotations

import pytest

from tutorly.engine.errors import InvalidDurationError
from tutorly.engine.pacing import PacingTimer, format_duration

from conftest import FakeClock


def test_format_duration() -> None:
    assert format_duration(45 * 60) == "45 min"
    assert format_duration(60 * 60) == "1 hr"
    assert format_duration(90 * 60) == "1 hr 30 min"
    assert format_duration(59) == "0 min"


def test_inactive_timer_has_no_directive() -> None:
    timer = PacingTimer(clock=FakeClock())
    assert timer.pacing_description() is None
    assert timer.elapsed == 0.0
    assert timer.tick() is False


def test_directive_tracks_elapsed_and_remaining() -> None:
    clock = FakeClock()
    timer = PacingTimer(clock=clock)
    timer.start_minutes(30)
    clock.advance(12 * 60 + 30)

    assert timer.pacing_description() == (
        "The user requested a 30-minute session. 12 minutes have elapsed "
        "with 17 minutes remaining. Pace the lesson accordingly."
    )
    assert timer.progress == pytest.approx(750 / 1800)


def test_low_time_directive_only_for_longer_sessions() -> None:
    clock = FakeClock()
    timer = PacingTimer(clock=clock)
    timer.start_minutes(30)
    clock.advance(26 * 60)
    assert "Consider starting to wrap up" in timer.pacing_description()

    short = PacingTimer(clock=clock)
    short.start_minutes(10)
    clock.advance(7 * 60)
    assert "Pace the lesson accordingly" in short.pacing_description()


def test_pause_freezes_elapsed_time() -> None:
    clock = FakeClock()
    timer = PacingTimer(clock=clock)
    timer.start_minutes(15)
    clock.advance(5 * 60)

    timer.pause()
    clock.advance(60 * 60)
    assert timer.elapsed == 5 * 60
    assert timer.is_paused
    assert timer.pacing_description() is None
    assert timer.tick() is False

    timer.resume()
    clock.advance(60)
    assert timer.elapsed == 6 * 60


def test_expiry_is_reported_once_and_sticks() -> None:
    clock = FakeClock()
    timer = PacingTimer(clock=clock)
    timer.start_minutes(5)
    clock.advance(5 * 60)

    assert timer.tick() is True
    assert timer.tick() is False
    assert timer.has_expired

    clock.advance(3 * 60)
    assert timer.remaining == 0
    assert "running 3 minutes over" in timer.pacing_description()


def test_stop_clears_state() -> None:
    clock = FakeClock()
    timer = PacingTimer(clock=clock)
    timer.start_minutes(20)
    clock.advance(25 * 60)
    timer.tick()

    timer.stop()

    assert not timer.is_started
    assert not timer.has_expired
    assert timer.pacing_description() is None


@pytest.mark.parametrize("minutes", [0, 4, 121, -10])
def test_out_of_range_durations_are_rejected(minutes: int) -> None:
    timer = PacingTimer(clock=FakeClock())
    with pytest.raises(InvalidDurationError):
        timer.start_minutes(minutes)
    assert not timer.is_started
