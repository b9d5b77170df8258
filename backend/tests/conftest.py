import sys
from pathlib import Path

import pytest


# Ensure `backend/` is on sys.path so tests can import local modules
# like `geo.*`, `mapdata.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    # Telemetry is opt-in per test; never write into the repo's data dir.
    monkeypatch.setenv("KENTRA_TELEMETRY", "0")
    monkeypatch.setenv("KENTRA_TELEMETRY_PATH", str(tmp_path / "telemetry.duckdb"))
    monkeypatch.setenv("KENTRA_SUPABASE_URL", "https://backend.test")
    monkeypatch.setenv("KENTRA_SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setenv("KENTRA_SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.delenv("KENTRA_MAP_CONFIG", raising=False)
    monkeypatch.delenv("KENTRA_MAP_SURFACE", raising=False)
    from config.tuning import clear_tuning_cache
    from telemetry.singleton import close_store

    clear_tuning_cache()
    yield
    close_store()
    clear_tuning_cache()
