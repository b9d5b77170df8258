from .adaptive import AdaptiveDebouncer, FrameSampler
from .fixed import Debouncer
from .scheduler import AsyncioScheduler, Scheduler

__all__ = [
    "AdaptiveDebouncer",
    "AsyncioScheduler",
    "Debouncer",
    "FrameSampler",
    "Scheduler",
]
