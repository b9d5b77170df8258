from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS map_events (
  ts_ms BIGINT,
  endpoint TEXT,
  cache_key TEXT,
  zoom DOUBLE,
  north DOUBLE,
  south DOUBLE,
  east DOUBLE,
  west DOUBLE,
  cache_hit BOOLEAN,
  duration_ms DOUBLE,
  is_clustered BOOLEAN,
  total_count BIGINT,
  error TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  endpoint,
  COUNT(*) AS n,
  AVG(duration_ms) AS avg_ms,
  quantile_cont(duration_ms, 0.50) AS p50_ms,
  quantile_cont(duration_ms, 0.95) AS p95_ms,
  AVG(CASE WHEN cache_hit THEN 1 ELSE 0 END) AS cache_hit_rate,
  AVG(CASE WHEN error IS NOT NULL THEN 1 ELSE 0 END) AS error_rate
FROM map_events
{where_sql}
GROUP BY endpoint
ORDER BY endpoint
"""

SLOWEST_SQL_TEMPLATE = """
SELECT
  ts_ms,
  endpoint,
  cache_key,
  zoom,
  duration_ms,
  cache_hit,
  error
FROM map_events
WHERE {where_sql}
ORDER BY duration_ms DESC
LIMIT ?
"""

INSERT_EVENTS_SQL = """
INSERT INTO map_events
  (ts_ms, endpoint, cache_key, zoom, north, south, east, west,
   cache_hit, duration_ms, is_clustered, total_count, error)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
