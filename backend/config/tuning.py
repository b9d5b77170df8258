from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from config.settings import map_config_path


class DebounceTuning(BaseModel):
    bounds_delay_ms: int = Field(default=300, ge=0)


class AdaptiveTier(BaseModel):
    min_fps: float = Field(ge=0.0)
    delay_ms: int = Field(ge=0)


class AdaptiveTuning(BaseModel):
    window: int = Field(default=10, ge=1)
    default_delay_ms: int = Field(default=400, ge=0)
    tiers: list[AdaptiveTier] = Field(
        default_factory=lambda: [
            AdaptiveTier(min_fps=50, delay_ms=200),
            AdaptiveTier(min_fps=30, delay_ms=400),
            AdaptiveTier(min_fps=0, delay_ms=800),
        ]
    )

    @model_validator(mode="after")
    def _sorted_tiers(self) -> "AdaptiveTuning":
        if not self.tiers:
            raise ValueError("adaptive.tiers must not be empty")
        self.tiers = sorted(self.tiers, key=lambda t: t.min_fps, reverse=True)
        return self


class CacheTuning(BaseModel):
    stale_time_s: float = Field(default=30.0, ge=0.0)
    gc_time_s: float = Field(default=300.0, ge=0.0)
    retry: int = Field(default=2, ge=0)
    retry_delay_s: float = Field(default=1.0, ge=0.0)


class QueryTuning(BaseModel):
    min_zoom: float = Field(default=0.0, ge=0.0)
    default_expansion_zoom_step: int = Field(default=2, ge=0)
    max_expansion_zoom: int = Field(default=14, ge=0)


class SearchTuning(BaseModel):
    min_query_length: int = Field(default=2, ge=0)
    default_limit: int = Field(default=50, ge=1)
    stale_time_s: float = Field(default=30.0, ge=0.0)


class MapTuning(BaseModel):
    """
    All knobs of the map pipeline in one validated object.

    Defaults mirror `config/map.yaml` so a missing or partial file still yields a
    working configuration.
    """

    debounce: DebounceTuning = Field(default_factory=DebounceTuning)
    adaptive: AdaptiveTuning = Field(default_factory=AdaptiveTuning)
    cache: CacheTuning = Field(default_factory=CacheTuning)
    query: QueryTuning = Field(default_factory=QueryTuning)
    search: SearchTuning = Field(default_factory=SearchTuning)


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid map config yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def get_tuning() -> MapTuning:
    return MapTuning.model_validate(_load_yaml(map_config_path()))


def clear_tuning_cache() -> None:
    """
    Forget the cached tuning so the next `get_tuning()` re-reads the yaml.
    """
    get_tuning.cache_clear()
