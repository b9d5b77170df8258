from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import settings
from config.tuning import MapTuning, clear_tuning_cache, get_tuning


def test_shipped_yaml_matches_defaults():
    t = get_tuning()
    assert t.debounce.bounds_delay_ms == 300
    assert t.adaptive.window == 10
    assert t.adaptive.default_delay_ms == 400
    assert [(tier.min_fps, tier.delay_ms) for tier in t.adaptive.tiers] == [
        (50, 200),
        (30, 400),
        (0, 800),
    ]
    assert t.cache.stale_time_s == 30
    assert t.cache.gc_time_s == 300
    assert t.cache.retry == 2
    assert t.query.max_expansion_zoom == 14
    assert t.search.min_query_length == 2
    assert t == MapTuning()


def test_partial_yaml_keeps_other_defaults(tmp_path, monkeypatch):
    path = tmp_path / "map.yaml"
    path.write_text(
        "cache:\n  stale_time_s: 5\nadaptive:\n  tiers:\n"
        "    - {min_fps: 0, delay_ms: 900}\n    - {min_fps: 45, delay_ms: 100}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("KENTRA_MAP_CONFIG", str(path))
    clear_tuning_cache()

    t = get_tuning()
    assert t.cache.stale_time_s == 5
    assert t.cache.retry == 2
    assert [tier.min_fps for tier in t.adaptive.tiers] == [45, 0]


def test_missing_yaml_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("KENTRA_MAP_CONFIG", str(tmp_path / "absent.yaml"))
    clear_tuning_cache()
    assert get_tuning() == MapTuning()


def test_invalid_values_are_rejected(tmp_path, monkeypatch):
    path = tmp_path / "map.yaml"
    path.write_text("cache:\n  retry: -1\n", encoding="utf-8")
    monkeypatch.setenv("KENTRA_MAP_CONFIG", str(path))
    clear_tuning_cache()
    with pytest.raises(PydanticValidationError):
        get_tuning()


def test_non_mapping_root_is_rejected(tmp_path, monkeypatch):
    path = tmp_path / "map.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    monkeypatch.setenv("KENTRA_MAP_CONFIG", str(path))
    clear_tuning_cache()
    with pytest.raises(ValueError):
        get_tuning()


def test_settings_accessors(monkeypatch):
    monkeypatch.setenv("KENTRA_SUPABASE_URL", "https://x.supabase.co/")
    monkeypatch.setenv("KENTRA_RPC_TIMEOUT_S", "abc")
    monkeypatch.setenv("KENTRA_TELEMETRY", "off")
    assert settings.supabase_url() == "https://x.supabase.co"
    assert settings.rpc_timeout_s() is None
    assert settings.telemetry_enabled() is False

    monkeypatch.setenv("KENTRA_RPC_TIMEOUT_S", "2.5")
    monkeypatch.delenv("KENTRA_TELEMETRY")
    assert settings.rpc_timeout_s() == 2.5
    assert settings.telemetry_enabled() is True
    assert settings.map_surface_name() == "plotly"
