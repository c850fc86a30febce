from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional


Clock = Callable[[], datetime]
MonotonicClock = Callable[[], float]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def monotonic_now() -> float:
    """Seconds from an arbitrary origin; only differences are meaningful."""
    return time.monotonic()


@dataclass(frozen=True)
class StepTiming:
    """Wall-clock span of one export phase and how it ended."""

    name: str
    started_at: datetime
    finished_at: datetime
    failed_with: Optional[str] = None

    @property
    def duration_s(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def ok(self) -> bool:
        return self.failed_with is None


class StepTimer:
    """Collects StepTiming records for named phases, in the order they ran."""

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self.steps: List[StepTiming] = []

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def total_s(self) -> float:
        return sum(step.duration_s for step in self.steps)

    @contextmanager
    def step(self, name: str) -> Iterator[None]:
        begun = self._clock()
        failure: Optional[str] = None
        try:
            yield
        except BaseException as exc:
            failure = type(exc).__name__
            raise
        finally:
            self.steps.append(StepTiming(name, begun, self._clock(), failure))
