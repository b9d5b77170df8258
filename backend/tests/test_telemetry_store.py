from __future__ import annotations

import queue

import duckdb

from geo.bounds import MapBounds
from mapdata.types import MapDataResponse
from telemetry.record import record_map_event
from telemetry.singleton import get_store, reset_store
from telemetry.store import MAX_PENDING_EVENTS, TelemetryStore


def test_telemetry_store_writes_rows(tmp_path, monkeypatch):
    db_path = tmp_path / "telemetry.duckdb"
    monkeypatch.setenv("KENTRA_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("KENTRA_TELEMETRY", "1")

    store = get_store()
    assert store is not None

    store.record(
        endpoint="/map-data",
        stats={"cacheKey": "19.500_19.300_-99.100_-99.200", "cacheHit": False, "durationMs": 12.5},
        zoom=10.0,
        bounds={"north": 19.5, "south": 19.3, "east": -99.1, "west": -99.2},
        is_clustered=True,
        total_count=250,
    )
    store.flush(timeout_s=2.0)

    # Use the existing connection; DuckDB disallows opening the same file with different configs.
    n = int(store.conn.execute("select count(*) from map_events").fetchone()[0])
    assert n == 1

    row = store.conn.execute(
        "select endpoint, cache_key, north, is_clustered, total_count from map_events limit 1"
    ).fetchone()
    assert row == ("/map-data", "19.500_19.300_-99.100_-99.200", 19.5, True, 250)


def test_summary_and_slowest(tmp_path, monkeypatch):
    monkeypatch.setenv("KENTRA_TELEMETRY_PATH", str(tmp_path / "telemetry.duckdb"))
    monkeypatch.setenv("KENTRA_TELEMETRY", "1")
    store = get_store()
    assert store is not None

    for ms, hit, err in ((10.0, False, None), (1.0, True, None), (50.0, False, "timeout")):
        store.record(
            endpoint="/map-data",
            stats={"cacheKey": "k", "cacheHit": hit, "durationMs": ms},
            error=err,
        )
    store.flush(timeout_s=2.0)

    (summary,) = store.summary(endpoint="/map-data")
    assert summary["n"] == 3
    assert abs(summary["cacheHitRate"] - 1 / 3) < 1e-9
    assert abs(summary["errorRate"] - 1 / 3) < 1e-9

    slowest = store.slowest(limit=2)
    assert [r["durationMs"] for r in slowest] == [50.0, 10.0]
    assert slowest[0]["error"] == "timeout"


def test_record_map_event_skips_suspended_and_disabled(tmp_path, monkeypatch):
    monkeypatch.setenv("KENTRA_TELEMETRY_PATH", str(tmp_path / "telemetry.duckdb"))
    bounds = MapBounds(north=19.5, south=19.3, east=-99.1, west=-99.2)

    # Disabled by the test environment.
    record_map_event("/map-data", stats={"cacheKey": "k"}, bounds=bounds, zoom=10)
    assert get_store() is None

    monkeypatch.setenv("KENTRA_TELEMETRY", "1")
    record_map_event("/map-data", stats={"suspended": True}, bounds=None, zoom=10)
    record_map_event(
        "/map-data",
        stats={"cacheKey": bounds.key(), "cacheHit": True, "durationMs": 0.2},
        bounds=bounds,
        zoom=10,
        data=MapDataResponse(total_count=3),
    )
    store = get_store()
    assert store is not None
    store.flush(timeout_s=2.0)
    rows = store.query("select cache_key, total_count from map_events")
    assert rows == [(bounds.key(), 3)]


def test_telemetry_reset_deletes_db(tmp_path, monkeypatch):
    db_path = tmp_path / "telemetry.duckdb"
    monkeypatch.setenv("KENTRA_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("KENTRA_TELEMETRY", "1")

    store = get_store()
    assert store is not None
    store.record(endpoint="/map-stream", stats={})
    assert store.path.resolve() == db_path.resolve()

    reset_store()
    assert not db_path.exists()


def test_full_queue_drops_events(tmp_path, monkeypatch):
    store = TelemetryStore(
        path=tmp_path / "t.duckdb", conn=duckdb.connect(":memory:"), _q=queue.Queue(maxsize=1)
    )
    # No writer thread, so nothing drains the queue.
    monkeypatch.setattr(store, "start", lambda: None)
    store.record(endpoint="/map-data", stats={"cacheKey": "a"})
    store.record(endpoint="/map-data", stats={"cacheKey": "b"})
    assert store._q.qsize() == 1
    assert store._q.get_nowait()[2] == "a"
    store.conn.close()


def test_default_queue_is_bounded(tmp_path):
    store = TelemetryStore(path=tmp_path / "t.duckdb", conn=duckdb.connect(":memory:"))
    assert store._q.maxsize == MAX_PENDING_EVENTS
    store.conn.close()
