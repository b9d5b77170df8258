from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable

from config.tuning import CacheTuning
from rpc.errors import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

QueryKey = tuple[Hashable, ...]

# Errors that a retry cannot fix.
_NO_RETRY = (ValidationError, AuthorizationError)


@dataclass(frozen=True)
class QueryOptions:
    stale_time_s: float = 30.0
    gc_time_s: float = 300.0
    retry: int = 2
    retry_delay_s: float = 1.0

    @classmethod
    def from_tuning(cls, tuning: CacheTuning) -> "QueryOptions":
        return cls(
            stale_time_s=tuning.stale_time_s,
            gc_time_s=tuning.gc_time_s,
            retry=tuning.retry,
            retry_delay_s=tuning.retry_delay_s,
        )


@dataclass
class _Entry:
    data: Any = None
    has_data: bool = False
    updated_at: float = 0.0
    last_access: float = 0.0
    invalidated: bool = False
    in_flight: asyncio.Future | None = None
    last_error: BaseException | None = None


@dataclass(frozen=True)
class QueryResult:
    data: Any
    # True when served from a fresh entry without touching the network.
    cache_hit: bool
    # True when this caller joined a request another caller had started.
    shared: bool = False
    attempts: int = 0


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    shared: int = 0
    failures: int = 0
    evictions: int = 0


def _collect_result(task: "asyncio.Future[Any]") -> None:
    # Retrieve the outcome even when every awaiting caller was cancelled.
    if task.cancelled():
        return
    e = task.exception()
    if e is not None:
        logger.debug("Query task failed: %s", e)


class QueryCache:
    """
    Process-wide cache of remote query results, keyed by the request's own parameters.

    Semantics follow the usual query-cache model:
    - an entry is fresh for `stale_time_s` after a successful fetch; fresh entries are
      served without a network call
    - callers asking for a key that is already being fetched share that request
    - failures are never cached; the last good value for the key is kept
    - entries not read for `gc_time_s` are evicted
    - nothing refetches on its own: only a stale read or `invalidate()` does
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._entries: dict[QueryKey, _Entry] = {}
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def is_fresh(self, key: QueryKey, options: QueryOptions) -> bool:
        e = self._entries.get(key)
        if e is None or not e.has_data or e.invalidated:
            return False
        return (self._clock() - e.updated_at) < options.stale_time_s

    def snapshot(self, key: QueryKey) -> Any | None:
        """
        Last good value for `key`, fresh or stale, without fetching.
        """
        e = self._entries.get(key)
        if e is None or not e.has_data:
            return None
        return e.data

    async def fetch(
        self,
        key: QueryKey,
        fn: Callable[[], Awaitable[Any]],
        options: QueryOptions | None = None,
    ) -> QueryResult:
        opts = options or QueryOptions()
        now = self._clock()
        self.gc(opts, now=now)

        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        entry.last_access = now

        if self.is_fresh(key, opts):
            self.stats.hits += 1
            return QueryResult(data=entry.data, cache_hit=True)

        if entry.in_flight is not None and not entry.in_flight.done():
            self.stats.shared += 1
            data, attempts = await asyncio.shield(entry.in_flight)
            return QueryResult(data=data, cache_hit=False, shared=True, attempts=attempts)

        self.stats.misses += 1
        task = asyncio.ensure_future(self._run(key, entry, fn, opts))
        entry.in_flight = task
        task.add_done_callback(_collect_result)
        # Shield: a caller going away must not abort the request others may share.
        data, attempts = await asyncio.shield(task)
        return QueryResult(data=data, cache_hit=False, attempts=attempts)

    async def _run(
        self,
        key: QueryKey,
        entry: _Entry,
        fn: Callable[[], Awaitable[Any]],
        opts: QueryOptions,
    ) -> tuple[Any, int]:
        attempts = 0
        try:
            while True:
                attempts += 1
                try:
                    data = await fn()
                except _NO_RETRY:
                    self.stats.failures += 1
                    raise
                except Exception as e:
                    if attempts > opts.retry:
                        self.stats.failures += 1
                        entry.last_error = e
                        raise
                    logger.info(
                        "Query %s failed (attempt %d/%d): %s; retrying",
                        key[0] if key else "?",
                        attempts,
                        opts.retry + 1,
                        e,
                    )
                    await self._sleep(opts.retry_delay_s)
                    continue
                entry.data = data
                entry.has_data = True
                entry.updated_at = self._clock()
                entry.invalidated = False
                entry.last_error = None
                return data, attempts
        finally:
            entry.in_flight = None

    def invalidate(self, prefix: QueryKey = ()) -> int:
        """
        Mark every entry whose key starts with `prefix` as stale. Returns the count.
        """
        n = 0
        for key, e in self._entries.items():
            if key[: len(prefix)] == prefix:
                e.invalidated = True
                n += 1
        return n

    def gc(self, options: QueryOptions | None = None, *, now: float | None = None) -> int:
        opts = options or QueryOptions()
        t = self._clock() if now is None else now
        dead = [
            k
            for k, e in self._entries.items()
            if e.in_flight is None and (t - e.last_access) >= opts.gc_time_s
        ]
        for k in dead:
            self._entries.pop(k, None)
        self.stats.evictions += len(dead)
        return len(dead)

    def clear(self) -> None:
        """
        Drop everything (e.g. on sign-out). In-flight requests finish into orphaned entries.
        """
        self._entries = {}
