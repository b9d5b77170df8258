from __future__ import annotations

from collections import deque
from typing import Callable, Iterable, TypeVar

from config.tuning import AdaptiveTier, AdaptiveTuning
from debounce.fixed import Debouncer
from debounce.scheduler import Scheduler

T = TypeVar("T")


class FrameSampler:
    """
    Tracks render-loop frame timing and picks a debounce delay from it.

    Keeps a sliding window of the last N frame durations. Once the window is full,
    every new frame recomputes the mean FPS and selects a tier; before that the
    previous delay (the configured default at start) stays in effect.
    """

    def __init__(
        self,
        *,
        window: int = 10,
        default_delay_ms: int = 400,
        tiers: Iterable[AdaptiveTier] | None = None,
        on_change: Callable[[int], None] | None = None,
    ) -> None:
        self.window = max(1, int(window))
        self.delay_ms = int(default_delay_ms)
        self.tiers = sorted(
            tiers if tiers is not None else AdaptiveTuning().tiers,
            key=lambda t: t.min_fps,
            reverse=True,
        )
        self.on_change = on_change
        self._durations: deque[float] = deque(maxlen=self.window)
        self._last_ts_ms: float | None = None

    @classmethod
    def from_tuning(cls, tuning: AdaptiveTuning, **kwargs) -> "FrameSampler":
        return cls(
            window=tuning.window,
            default_delay_ms=tuning.default_delay_ms,
            tiers=tuning.tiers,
            **kwargs,
        )

    @property
    def samples(self) -> int:
        return len(self._durations)

    @property
    def fps(self) -> float | None:
        if len(self._durations) < self.window:
            return None
        avg = sum(self._durations) / len(self._durations)
        if avg <= 0:
            return None
        return 1000.0 / avg

    def record_frame(self, ts_ms: float) -> int:
        """
        Record a frame timestamp (ms, monotonic). The first call only primes the clock.
        """
        ts_ms = float(ts_ms)
        if self._last_ts_ms is not None:
            self._push(ts_ms - self._last_ts_ms)
        self._last_ts_ms = ts_ms
        return self.delay_ms

    def record_durations(self, durations_ms: Iterable[float]) -> int:
        """
        Feed frame durations measured elsewhere (e.g. reported by a browser client).
        """
        for d in durations_ms:
            self._push(float(d))
        return self.delay_ms

    def _push(self, duration_ms: float) -> None:
        if duration_ms < 0:
            return
        self._durations.append(duration_ms)
        fps = self.fps
        if fps is None:
            return
        delay = self._delay_for(fps)
        if delay != self.delay_ms:
            self.delay_ms = delay
            if self.on_change is not None:
                self.on_change(delay)

    def _delay_for(self, fps: float) -> int:
        for tier in self.tiers:
            if fps >= tier.min_fps:
                return int(tier.delay_ms)
        return int(self.tiers[-1].delay_ms)


class AdaptiveDebouncer(Debouncer[T]):
    """
    Debouncer whose delay follows the FrameSampler's current tier.
    """

    def __init__(
        self,
        sampler: FrameSampler,
        scheduler: Scheduler,
        on_commit: Callable[[T], None] | None = None,
        initial: T | None = None,
    ) -> None:
        super().__init__(
            sampler.delay_ms, scheduler, on_commit=on_commit, initial=initial
        )
        self.sampler = sampler
        sampler.on_change = self.set_delay

    def record_frame(self, ts_ms: float) -> None:
        self.sampler.record_frame(ts_ms)

    def record_durations(self, durations_ms: Iterable[float]) -> None:
        self.sampler.record_durations(durations_ms)
