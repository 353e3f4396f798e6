"""Leaflet map renderer for drive-time polygons.

Leaflet works in lon/lat, so graphics recorded in Web Mercator are projected
back before they are embedded. Other spatial references cannot be shown.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from drivetime_planner.colors import rgb_to_hex
from drivetime_planner.mapview import PointGraphic, PolygonGraphic
from drivetime_planner.renderers import render_template

if TYPE_CHECKING:
    from collections.abc import Sequence

    from drivetime_planner.mapview import Graphic

WGS84 = 4326
WEB_MERCATOR = frozenset({3857, 102100, 102113, 900913})
EARTH_RADIUS_M = 6378137.0


def to_lon_lat(x: float, y: float, wkid: int) -> tuple[float, float] | None:
    """Project a coordinate to (lon, lat), or None if ``wkid`` is unsupported."""
    if wkid == WGS84:
        return (x, y)
    if wkid in WEB_MERCATOR:
        lon = math.degrees(x / EARTH_RADIUS_M)
        lat = math.degrees(2 * math.atan(math.exp(y / EARTH_RADIUS_M)) - math.pi / 2)
        return (lon, lat)
    return None


def _latlng_rings(rings: list[list[list[float]]], wkid: int) -> list[list[list[float]]] | None:
    out: list[list[list[float]]] = []
    for ring in rings:
        converted: list[list[float]] = []
        for vertex in ring:
            lon_lat = to_lon_lat(vertex[0], vertex[1], wkid)
            if lon_lat is None:
                return None
            converted.append([lon_lat[1], lon_lat[0]])
        out.append(converted)
    return out


def _layers(graphics: Sequence[Graphic]) -> dict[str, list[dict[str, Any]]] | None:
    points: list[dict[str, Any]] = []
    polygons: list[dict[str, Any]] = []
    for g in graphics:
        if isinstance(g, PointGraphic):
            lon_lat = to_lon_lat(g.point.x, g.point.y, g.point.wkid)
            if lon_lat is None:
                return None
            points.append(
                {
                    "lat": lon_lat[1],
                    "lon": lon_lat[0],
                    "color": rgb_to_hex(g.color),
                    "outline": rgb_to_hex(g.outline),
                    "weight": g.outline_width,
                    "radius": g.size / 2,
                }
            )
        elif isinstance(g, PolygonGraphic):
            latlngs = _latlng_rings(g.rings, g.wkid)
            if latlngs is None:
                return None
            polygons.append(
                {
                    "latlngs": latlngs,
                    "color": rgb_to_hex(g.color),
                    "fill_opacity": g.fill_opacity,
                    "weight": g.outline_width,
                }
            )
    return {"points": points, "polygons": polygons}


def build_drive_time_map_html(
    graphics: Sequence[Graphic], title: str | None = None
) -> tuple[str, str]:
    """Build an interactive Leaflet map of the recorded graphics.

    Polygons are drawn before points so the clicked marker stays on top.

    Returns a (map_div_html, map_script_js) tuple. The script is empty when
    there is nothing to show.
    """
    heading = title or "Drive Time Areas"
    if not graphics:
        return (
            render_template("drive_time_map.html.j2", title=heading, notice="No point selected."),
            "",
        )

    layers = _layers(graphics)
    if layers is None:
        return (
            render_template(
                "drive_time_map.html.j2",
                title=heading,
                notice="These graphics use a spatial reference the map cannot display.",
            ),
            "",
        )

    map_div = render_template("drive_time_map.html.j2", title=heading, notice=None)
    map_script = render_template("drive_time_map_script.html.j2", layers=layers)
    return (map_div, map_script)
