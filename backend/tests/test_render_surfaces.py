from __future__ import annotations

import pytest

from fakes import MEXICO_CITY, map_payload
from geo.bounds import MapBounds
from mapdata.decode import decode_map_data
from render.placeholder import PlaceholderSurface
from render.plotly_surface import PlotlyMapSurface, format_price
from render.registry import get_surface, surface_names

BOUNDS = MapBounds(**MEXICO_CITY)


def test_format_price():
    assert format_price(950_000) == "$950K"
    assert format_price(2_400_000) == "$2.4M"
    assert format_price(3_000_000) == "$3M"
    assert format_price(500, "USD") == "500 USD"


def test_plotly_surface_renders_markers():
    data = decode_map_data(map_payload(2), zoom=15).data
    payload = PlotlyMapSurface().render(data.properties, data.clusters, bounds=BOUNDS, zoom=15)
    assert payload["surface"] == "plotly"
    names = [t["name"] for t in payload["data"]]
    assert names == ["Viewport", "Properties"]
    props = payload["data"][1]
    assert props["customdata"] == ["p0", "p1"]
    assert payload["layout"]["mapbox"]["zoom"] == 15.0
    assert payload["layout"]["mapbox"]["center"] == pytest.approx({"lat": 19.4, "lon": -99.15})
    assert payload["layout"]["meta"]["stats"]["renderedProperties"] == 2


def test_plotly_surface_renders_clusters():
    data = decode_map_data(map_payload(clustered=True), zoom=10).data
    payload = PlotlyMapSurface().render(data.properties, data.clusters, is_loading=True)
    names = [t["name"] for t in payload["data"]]
    assert names == ["Properties (clusters)"]
    assert payload["data"][0]["customdata"] == [["c1", 12], ["c2", 12]]
    meta = payload["layout"]["meta"]
    assert meta["isLoading"] is True
    assert meta["stats"]["clusteredProperties"] == 29


def test_placeholder_counts_properties_in_view():
    data = decode_map_data(map_payload(2), zoom=15).data
    narrow = MapBounds(north=19.4005, south=19.39, east=-99.14, west=-99.16)
    payload = PlaceholderSurface().render(data.properties, data.clusters, bounds=narrow, zoom=15)
    assert payload["surface"] == "placeholder"
    assert payload["counts"]["properties"] == 2
    assert payload["counts"]["propertiesInView"] == 1
    assert payload["message"] == "2 properties in this area"


def test_placeholder_messages():
    s = PlaceholderSurface()
    assert s.render((), (), is_loading=True)["message"] == "Loading properties..."
    assert s.render((), ())["message"] == "No properties in this area"


def test_registry_falls_back_to_default(monkeypatch):
    assert surface_names() == ["placeholder", "plotly"]
    assert get_surface("placeholder").name == "placeholder"
    assert get_surface("nope").name == "plotly"

    monkeypatch.setenv("KENTRA_MAP_SURFACE", "placeholder")
    assert get_surface(None).name == "placeholder"


def test_surface_events_subscribe_and_unsubscribe():
    s = PlotlyMapSurface()
    seen = []
    off = s.on("marker_click", seen.append)
    s.emit("marker_click", {"propertyId": "p1"})
    off()
    s.emit("marker_click", {"propertyId": "p2"})
    assert seen == [{"propertyId": "p1"}]

    with pytest.raises(ValueError):
        s.on("zoom_changed", seen.append)


def test_failing_listener_does_not_stop_others():
    s = PlaceholderSurface()
    seen = []

    def boom(_payload):
        raise RuntimeError("listener failed")

    s.on("map_error", boom)
    s.on("map_error", seen.append)
    s.emit("map_error", {"error": "x"})
    assert seen == [{"error": "x"}]
