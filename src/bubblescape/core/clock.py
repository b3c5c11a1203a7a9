"""
Frame clock.

Hands out one (time, delta_time) pair per rendered frame. The measured delta
is clamped to ``max_delta`` so a hitch never produces a huge step.
"""

import time as _time
from dataclasses import dataclass
from typing import Callable

from bubblescape.errors import ConfigurationError


@dataclass(frozen=True)
class FrameTime:
    time: float
    delta_time: float
    frame_index: int


class FrameClock:
    """
    Monotonic animation clock.

    With a fixed ``time_step`` the animation time advances by that amount per
    frame regardless of wall time (frame-locked animation). With
    ``time_step=None`` it advances by the clamped measured delta.
    """

    def __init__(
        self,
        max_delta: float = 0.05,
        time_step: float | None = 0.01,
        timer: Callable[[], float] = _time.perf_counter,
    ):
        if not max_delta > 0:
            raise ConfigurationError(f"max_delta must be positive, got {max_delta!r}")
        if time_step is not None and not time_step > 0:
            raise ConfigurationError(f"time_step must be positive, got {time_step!r}")

        self.max_delta = max_delta
        self.time_step = time_step
        self.timer = timer

        self.time = 0.0
        self.frame_index = -1
        self._last = timer()

    def advance(self, measured_delta: float) -> FrameTime:
        """Step the clock by an externally measured delta."""
        delta_time = min(self.max_delta, max(measured_delta, 0.0))
        self.time += self.time_step if self.time_step is not None else delta_time
        self.frame_index += 1
        return FrameTime(time=self.time, delta_time=delta_time, frame_index=self.frame_index)

    def tick(self) -> FrameTime:
        """Step the clock by the wall time since the previous tick."""
        now = self.timer()
        measured, self._last = now - self._last, now
        return self.advance(measured)
