"""Summary table and full-page assembly."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from drivetime_planner.renderers import render_template

if TYPE_CHECKING:
    from drivetime_planner.schemas import Point, WidgetView


def build_summary_html(view: WidgetView, point: Point | None = None) -> str:
    """Table of markers with drive time, color swatch and status."""
    rows = [
        {
            "id": m.id,
            "minutes": m.drive_time_minutes,
            "color": m.color,
            "status": "done" if m.completed else (m.error or "not drawn"),
            "completed": m.completed,
        }
        for m in view.markers
    ]
    return render_template(
        "summary.html.j2",
        rows=rows,
        point=point,
        error=view.error,
        mode=view.mode.value,
    )


def render_page(
    view: WidgetView,
    map_div: str,
    map_script: str,
    summary: str,
    updated: datetime | None = None,
) -> str:
    """Full HTML page around the map and summary fragments."""
    stamp = (updated or datetime.now()).strftime("%Y-%m-%d %H:%M")
    return render_template(
        "base.html.j2",
        title=view.title or "Drive Time Areas",
        instructions=view.instructions,
        updated=stamp,
        drive_time_map=map_div,
        map_script=map_script,
        summary=summary,
    )
