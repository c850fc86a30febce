from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from captionist.utils.timing import StepTimer


def _ticking_clock(step_seconds: float):  # noqa: ANN202
    current = [datetime(2024, 1, 1, tzinfo=timezone.utc)]

    def clock() -> datetime:
        value = current[0]
        current[0] = value + timedelta(seconds=step_seconds)
        return value

    return clock


def test_steps_recorded_in_order() -> None:
    timer = StepTimer(clock=_ticking_clock(2.0))

    with timer.step("submit"):
        pass
    with timer.step("poll"):
        pass

    assert [s.name for s in timer.steps] == ["submit", "poll"]
    assert all(s.ok for s in timer.steps)
    assert timer.steps[0].duration_s == 2.0
    assert timer.total_s == 4.0


def test_failed_step_is_recorded_and_reraised() -> None:
    timer = StepTimer(clock=_ticking_clock(1.0))

    with pytest.raises(ValueError):
        with timer.step("poll"):
            raise ValueError("boom")

    assert len(timer.steps) == 1
    assert not timer.steps[0].ok
    assert timer.steps[0].failed_with == "ValueError"
