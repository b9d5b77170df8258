from __future__ import annotations

import os
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_flag(name: str, default: str = "1") -> bool:
    v = (os.getenv(name) or default).strip().lower()
    return v not in {"0", "false", "no", "off"}


def supabase_url() -> str:
    return _env("KENTRA_SUPABASE_URL").rstrip("/")


def supabase_anon_key() -> str:
    return _env("KENTRA_SUPABASE_ANON_KEY")


def supabase_service_role_key() -> str:
    return _env("KENTRA_SUPABASE_SERVICE_ROLE_KEY")


def google_maps_api_key() -> str:
    # Public browser key; safe to hand out through /public-config.
    return _env("KENTRA_GOOGLE_MAPS_API_KEY")


def rpc_timeout_s() -> float | None:
    raw = _env("KENTRA_RPC_TIMEOUT_S")
    if not raw:
        return None
    try:
        return max(0.1, float(raw))
    except ValueError:
        return None


def map_surface_name() -> str:
    return _env("KENTRA_MAP_SURFACE", "plotly").lower()


def log_level() -> str:
    return _env("KENTRA_LOG_LEVEL", "INFO").upper()


def telemetry_enabled() -> bool:
    return _env_flag("KENTRA_TELEMETRY")


def telemetry_path() -> Path:
    # Store under repo so it's easy to query locally.
    return Path(
        os.getenv("KENTRA_TELEMETRY_PATH")
        or (_repo_root() / "data" / "telemetry" / "telemetry.duckdb")
    )


def map_config_path() -> Path:
    raw = _env("KENTRA_MAP_CONFIG")
    if raw:
        return Path(raw)
    return Path(__file__).resolve().parent / "map.yaml"
