from __future__ import annotations

import logging
import threading

import duckdb

from config.settings import telemetry_enabled, telemetry_path
from telemetry.store import TelemetryStore

logger = logging.getLogger(__name__)

_STORE: TelemetryStore | None = None
_STORE_LOCK = threading.RLock()


def get_store() -> TelemetryStore | None:
    global _STORE
    if not telemetry_enabled():
        return None
    with _STORE_LOCK:
        path = telemetry_path()
        if _STORE is not None:
            # Reopen if the configured path changed (tests point it at tmp dirs).
            if _STORE.path.resolve() == path.resolve():
                return _STORE
            logger.info("Telemetry path changed; reopening at %s", path)
            _STORE.close()
            _STORE = None

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = duckdb.connect(str(path))
        _STORE = TelemetryStore(path=path, conn=conn)
        _STORE.ensure_schema()
        _STORE.start()
        logger.debug("Telemetry store opened: %s", path)
        return _STORE


def reset_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is not None:
            _STORE.reset()
            _STORE = None
        else:
            telemetry_path().unlink(missing_ok=True)


def close_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is not None:
            _STORE.close()
            _STORE = None
