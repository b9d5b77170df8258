from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

from debounce.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class Debouncer(Generic[T]):
    """
    Delay-and-collapse gate for a stream of values.

    Every `push()` replaces the candidate and restarts the timer. The candidate is
    committed only when the timer fires without a newer push, so a burst of rapid
    updates produces exactly one commit carrying the last value.
    """

    def __init__(
        self,
        delay_ms: float,
        scheduler: Scheduler,
        on_commit: Callable[[T], None] | None = None,
        initial: T | None = None,
    ) -> None:
        self._delay_ms = float(delay_ms)
        self._scheduler = scheduler
        self._on_commit = on_commit
        self._candidate: object = _UNSET
        self._timer: TimerHandle | None = None
        self.value: T | None = initial

    @property
    def delay_ms(self) -> float:
        return self._delay_ms

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def push(self, value: T) -> None:
        self._candidate = value
        self._restart()

    def set_delay(self, delay_ms: float) -> None:
        """
        Change the delay. A pending value restarts its timer with the new delay.
        """
        delay_ms = float(delay_ms)
        if delay_ms == self._delay_ms:
            return
        self._delay_ms = delay_ms
        if self._timer is not None:
            self._restart()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._candidate = _UNSET

    def flush(self) -> None:
        if self._candidate is _UNSET:
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._commit()

    def _restart(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._scheduler.call_later(self._delay_ms / 1000.0, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self._candidate is _UNSET:
            return
        self._commit()

    def _commit(self) -> None:
        value = self._candidate
        self._candidate = _UNSET
        self.value = value  # type: ignore[assignment]
        if self._on_commit is not None:
            try:
                self._on_commit(value)  # type: ignore[arg-type]
            except Exception:
                logger.exception("Debounce commit callback failed")
