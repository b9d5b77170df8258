from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from telemetry.sql import (
    CREATE_EVENTS_TABLE_SQL,
    INSERT_EVENTS_SQL,
    SLOWEST_SQL_TEMPLATE,
    SUMMARY_SQL_TEMPLATE,
)

logger = logging.getLogger(__name__)

# Events beyond this backlog are dropped rather than buffered.
MAX_PENDING_EVENTS = 10_000


def _safe_float(v) -> float | None:
    if v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


@dataclass
class TelemetryStore:
    """
    Local DuckDB log of map data fetches.

    Writes are queued and flushed in batches by one writer thread, so recording
    never blocks a request.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _q: "queue.Queue[tuple]" = field(
        default_factory=lambda: queue.Queue(maxsize=MAX_PENDING_EVENTS), repr=False
    )
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _worker: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._run, name="telemetry-writer", daemon=True
        )
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        w = self._worker
        if w is not None and w.is_alive():
            w.join(timeout=timeout_s)
        self._worker = None

    def record(
        self,
        *,
        endpoint: str,
        stats: dict[str, Any],
        zoom: float | None = None,
        bounds: dict[str, float] | None = None,
        is_clustered: bool | None = None,
        total_count: int | None = None,
        error: str | None = None,
    ) -> None:
        b = bounds or {}
        row = (
            int(time.time() * 1000),
            str(endpoint),
            stats.get("cacheKey"),
            _safe_float(zoom),
            _safe_float(b.get("north")),
            _safe_float(b.get("south")),
            _safe_float(b.get("east")),
            _safe_float(b.get("west")),
            bool(stats.get("cacheHit")),
            _safe_float(stats.get("durationMs")),
            is_clustered,
            total_count,
            error,
        )
        self.start()
        try:
            self._q.put_nowait(row)
        except queue.Full:
            logger.debug("Telemetry queue full; event dropped")

    def flush(self, *, timeout_s: float = 2.0) -> None:
        """
        Wait until queued events are written (used by tests).
        """
        if self._worker is None:
            return
        deadline = time.time() + timeout_s
        while time.time() < deadline:
            if self._q.unfinished_tasks == 0:
                break
            time.sleep(0.01)
        # Writer flushes on a time trigger; give it one tick.
        time.sleep(0.55)

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        """
        Run a read query inside this process (DuckDB file locks block other processes).
        """
        with self._lock:
            if params:
                return self.conn.execute(sql, params).fetchall()
            return self.conn.execute(sql).fetchall()

    def summary(
        self,
        *,
        endpoint: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        where = []
        params: list[Any] = []
        if endpoint:
            where.append("endpoint = ?")
            params.append(endpoint)
        if since_ms is not None:
            where.append("ts_ms >= ?")
            params.append(int(since_ms))
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""

        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)
        return [
            {
                "endpoint": endpoint_v,
                "n": int(n),
                "avgMs": _safe_float(avg_ms),
                "p50Ms": _safe_float(p50),
                "p95Ms": _safe_float(p95),
                "cacheHitRate": _safe_float(hit_rate),
                "errorRate": _safe_float(err_rate),
            }
            for endpoint_v, n, avg_ms, p50, p95, hit_rate, err_rate in rows
        ]

    def slowest(self, *, endpoint: str | None = None, limit: int = 25) -> list[dict[str, Any]]:
        where = ["duration_ms IS NOT NULL"]
        params: list[Any] = []
        if endpoint:
            where.append("endpoint = ?")
            params.append(endpoint)
        params.append(int(max(1, min(200, limit))))

        rows = self.query(
            SLOWEST_SQL_TEMPLATE.format(where_sql=" AND ".join(where)), params
        )
        return [
            {
                "tsMs": int(ts_ms),
                "endpoint": endpoint_v,
                "cacheKey": cache_key,
                "zoom": _safe_float(zoom),
                "durationMs": _safe_float(duration_ms),
                "cacheHit": bool(cache_hit) if cache_hit is not None else None,
                "error": error,
            }
            for ts_ms, endpoint_v, cache_key, zoom, duration_ms, cache_hit, error in rows
        ]

    def close(self) -> None:
        self.stop(timeout_s=2.0)
        with self._lock:
            try:
                self.conn.close()
            except duckdb.Error as e:
                logger.debug("Telemetry close failed: %s", e)

    def reset(self) -> None:
        # Stop the writer first so it can't write to a closed connection.
        self.close()
        self.path.unlink(missing_ok=True)

    def _run(self) -> None:
        batch: list[tuple] = []
        last_flush = time.time()

        def flush_batch() -> None:
            nonlocal batch
            if not batch:
                return
            with self._lock:
                try:
                    self.conn.executemany(INSERT_EVENTS_SQL, batch)
                    self.conn.execute("CHECKPOINT;")
                except duckdb.Error as e:
                    logger.warning("Telemetry write failed (%d events dropped): %s", len(batch), e)
            batch = []

        while not self._stop.is_set():
            try:
                e = self._q.get(timeout=0.1)
            except queue.Empty:
                e = None
            if e is not None:
                batch.append(e)
                self._q.task_done()

            now = time.time()
            if len(batch) >= 250 or (batch and (now - last_flush) >= 0.5):
                flush_batch()
                last_flush = now

        while True:
            try:
                e = self._q.get_nowait()
            except queue.Empty:
                break
            batch.append(e)
            self._q.task_done()
        flush_batch()
