from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from mapdata.types import (
    EMPTY_MAP_DATA,
    MapDataResponse,
    PropertyCluster,
    PropertyImage,
    PropertyMarker,
)

logger = logging.getLogger(__name__)

# Fields where the backend may send null but the marker has a concrete default.
_MARKER_DEFAULTS: dict[str, Any] = {
    "price": 0.0,
    "currency": "MXN",
    "title": "",
    "listing_type": "venta",
    "type": "casa",
    "is_featured": False,
}

_INT_FIELDS = ("bedrooms", "parking", "count", "expansion_zoom")

_M = TypeVar("_M", bound=BaseModel)


@dataclass(frozen=True)
class DecodeIssue:
    path: str
    message: str


@dataclass(frozen=True)
class DecodeResult:
    data: MapDataResponse
    issues: list[DecodeIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def _as_list(raw: Any, path: str, issues: list[DecodeIssue]) -> list[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    issues.append(DecodeIssue(path=path, message=f"expected list, got {type(raw).__name__}"))
    return []


def _decode_images(item: dict[str, Any]) -> tuple[PropertyImage, ...]:
    raw = item.get("images")
    images: list[PropertyImage] = []
    if isinstance(raw, (list, tuple)):
        for i, img in enumerate(raw):
            if isinstance(img, str) and img:
                images.append(PropertyImage(url=img, position=i))
            elif isinstance(img, dict) and img.get("url"):
                try:
                    pos = int(img.get("position") if img.get("position") is not None else i)
                except (TypeError, ValueError):
                    pos = i
                images.append(PropertyImage(url=str(img["url"]), position=pos))
    if not images and item.get("image_url"):
        images.append(PropertyImage(url=str(item["image_url"]), position=0))
    return tuple(sorted(images, key=lambda im: im.position))


def _floor_ints(data: dict[str, Any]) -> None:
    # Numeric columns can arrive as 2.0 or 2.5; the marker wants whole numbers.
    for k in _INT_FIELDS:
        v = data.get(k)
        if isinstance(v, float) and math.isfinite(v):
            data[k] = int(math.floor(v))


def _validate_fieldwise(
    model: type[_M],
    data: dict[str, Any],
    path: str,
    issues: list[DecodeIssue],
    *,
    fallbacks: dict[str, Any] | None = None,
) -> _M | None:
    """
    Validate `data`, swapping each invalid field for its fallback (or the model's
    default) instead of rejecting the record.

    A record is dropped only when a required field without a fallback is missing or
    invalid (e.g. no coordinates).
    """
    fb = fallbacks or {}
    required = {name for name, f in model.model_fields.items() if f.is_required()}
    for _ in range(len(data) + 1):
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            bad = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            if not bad:
                issues.append(DecodeIssue(path=path, message=_first_error(e)))
                return None
            for name in bad:
                if name in required and name not in fb:
                    issues.append(DecodeIssue(path=path, message=_first_error(e)))
                    return None
            for name in bad:
                issues.append(
                    DecodeIssue(
                        path=f"{path}.{name}",
                        message=f"invalid value {data.get(name)!r}; using default",
                    )
                )
                if name in fb:
                    data[name] = fb[name]
                else:
                    data.pop(name, None)
    issues.append(DecodeIssue(path=path, message="could not be validated"))
    return None


def _decode_marker(item: Any, path: str, issues: list[DecodeIssue]) -> PropertyMarker | None:
    if not isinstance(item, dict):
        issues.append(DecodeIssue(path=path, message="expected object"))
        return None
    data = {k: v for k, v in item.items() if v is not None}
    for k, default in _MARKER_DEFAULTS.items():
        data.setdefault(k, default)
    if "id" in data:
        data["id"] = str(data["id"])
    if data.get("agent_id") is not None:
        data["agent_id"] = str(data["agent_id"])
    data["images"] = _decode_images(item)
    data.pop("image_url", None)
    _floor_ints(data)
    return _validate_fieldwise(PropertyMarker, data, path, issues)


def _default_expansion_zoom(zoom: float, *, step: int, max_zoom: int) -> int:
    return min(int(math.floor(zoom)) + step, max_zoom)


def _decode_cluster(
    item: Any,
    path: str,
    issues: list[DecodeIssue],
    *,
    zoom: float,
    expansion_step: int,
    max_expansion_zoom: int,
) -> PropertyCluster | None:
    if not isinstance(item, dict):
        issues.append(DecodeIssue(path=path, message="expected object"))
        return None
    default_zoom = _default_expansion_zoom(
        zoom, step=expansion_step, max_zoom=max_expansion_zoom
    )
    data = {k: v for k, v in item.items() if v is not None}
    if "id" in data:
        data["id"] = str(data["id"])
    data.setdefault("count", 0)
    data.setdefault("expansion_zoom", default_zoom)
    _floor_ints(data)
    return _validate_fieldwise(
        PropertyCluster, data, path, issues, fallbacks={"expansion_zoom": default_zoom}
    )


def _as_bool(v: Any) -> bool | None:
    if isinstance(v, bool):
        return v
    if isinstance(v, str) and v.strip().lower() in ("true", "false"):
        return v.strip().lower() == "true"
    if isinstance(v, int) and v in (0, 1):
        return bool(v)
    return None


def _first_error(e: PydanticValidationError) -> str:
    errs = e.errors()
    if not errs:
        return str(e)
    first = errs[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))

    first = errs[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))


def decode_map_data(
    raw: Any,
    *,
    zoom: float,
    expansion_step: int = 2,
    max_expansion_zoom: int = 14,
) -> DecodeResult:
    """
    Coerce a `get_map_data` payload into a MapDataResponse.

    The remote contract is not statically enforced, so decoding never fails as a
    whole:
    - missing top-level fields default to [], 0, False
    - null marker fields fall back to their marker defaults
    - fractional counts are floored, invalid optional fields take their defaults
    - list items missing a required field are dropped
    every substitution or drop is reported as an issue
    """
    issues: list[DecodeIssue] = []
    if raw is None:
        return DecodeResult(data=EMPTY_MAP_DATA, issues=[])
    if not isinstance(raw, dict):
        issues.append(DecodeIssue(path="$", message=f"expected object, got {type(raw).__name__}"))
        return DecodeResult(data=EMPTY_MAP_DATA, issues=issues)

    properties = []
    for i, item in enumerate(_as_list(raw.get("properties"), "properties", issues)):
        m = _decode_marker(item, f"properties[{i}]", issues)
        if m is not None:
            properties.append(m)

    clusters = []
    for i, item in enumerate(_as_list(raw.get("clusters"), "clusters", issues)):
        c = _decode_cluster(
            item,
            f"clusters[{i}]",
            issues,
            zoom=zoom,
            expansion_step=expansion_step,
            max_expansion_zoom=max_expansion_zoom,
        )
        if c is not None:
            clusters.append(c)

    total = raw.get("total_count", raw.get("total_in_viewport"))
    try:
        total_count = int(total) if total is not None else 0
    except (TypeError, ValueError):
        issues.append(DecodeIssue(path="total_count", message=f"not an integer: {total!r}"))
        total_count = 0

    raw_clustered = raw.get("is_clustered")
    is_clustered = _as_bool(raw_clustered)
    if is_clustered is None:
        if raw_clustered is not None:
            issues.append(
                DecodeIssue(path="is_clustered", message=f"not a boolean: {raw_clustered!r}")
            )
        is_clustered = False

    data = MapDataResponse(
        properties=tuple(properties),
        clusters=tuple(clusters),
        total_count=total_count,
        is_clustered=is_clustered,
    )
    if issues:
        logger.warning(
            "get_map_data payload had %d decode issue(s); first: %s: %s",
            len(issues),
            issues[0].path,
            issues[0].message,
        )
    return DecodeResult(data=data, issues=issues)
