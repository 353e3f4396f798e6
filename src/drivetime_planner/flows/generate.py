"""
Prefect flow for a headless drive-time run.

Places a point on an in-memory map, applies drive times, generates the
polygons, then writes the run record and an HTML page.

Run locally:
    python -m drivetime_planner.flows.generate

Run with Prefect dashboard:
    prefect server start &
    python -m drivetime_planner.flows.generate
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from prefect import flow, task
from prefect.cache_policies import NO_CACHE

from drivetime_planner.config import Settings, get_settings
from drivetime_planner.mapview import GraphicsLayer
from drivetime_planner.markers import MarkerStore
from drivetime_planner.renderers.drive_time_map import build_drive_time_map_html
from drivetime_planner.renderers.summary import build_summary_html, render_page
from drivetime_planner.schemas import MARKER_IDS, Isochrone, Point, WidgetView, WorkflowMode
from drivetime_planner.services.credentials import provider_from_settings
from drivetime_planner.services.http import create_client
from drivetime_planner.services.isochrone import IsochroneClient
from drivetime_planner.store import DataStore
from drivetime_planner.view import project
from drivetime_planner.workflow import WorkflowOrchestrator

if TYPE_CHECKING:
    import httpx

ISOCHRONES_PATH = Path("derived/isochrones.json")
SITE_PATH = Path("derived/site/index.html")


@dataclass
class Session:
    """Outcome of one headless run."""

    point: Point
    view: WidgetView
    layer: GraphicsLayer
    isochrones: list[Isochrone] = field(default_factory=list)

    @property
    def completed(self) -> dict[int, bool]:
        return {m.id: m.completed for m in self.view.markers}


async def run_session(
    settings: Settings,
    x: float,
    y: float,
    wkid: int = 4326,
    drive_times: dict[int, float] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Session:
    """Click, set drive times and generate, exactly as a user would."""
    layer = GraphicsLayer(wkid=wkid)
    async with create_client(timeout=settings.request_timeout, transport=transport) as http:
        workflow = WorkflowOrchestrator(
            MarkerStore.from_settings(settings),
            provider_from_settings(settings, http),
            IsochroneClient(http, settings.service_url),
            mode=settings.mode,
            title=settings.widget_title,
        )
        workflow.attach(layer)
        point = layer.click(x, y)
        for marker_id, minutes in (drive_times or {}).items():
            workflow.set_drive_time(marker_id, minutes)

        if workflow.mode is WorkflowMode.BATCH:
            isochrones = await workflow.generate()
        else:
            isochrones = []
            for marker_id in MARKER_IDS:
                isochrones.extend(await workflow.generate(marker_id))

        return Session(point=point, view=project(workflow), layer=layer, isochrones=isochrones)


# =============================================================================
# Tasks
# =============================================================================


@task(name="run-workflow", cache_policy=NO_CACHE)
async def run_workflow(
    settings: Settings,
    x: float,
    y: float,
    wkid: int,
    drive_times: dict[int, float] | None,
) -> Session:
    """Run the generation workflow against the routing service."""
    return await run_session(settings, x, y, wkid, drive_times)


@task(name="save-isochrones", cache_policy=NO_CACHE)
def save_isochrones(store: DataStore, session: Session, source: str) -> Path:
    """Persist the run's polygons and marker status."""
    data: dict[str, Any] = {
        "completed": {str(k): v for k, v in session.completed.items()},
        "error": session.view.error,
        "isochrones": [iso.model_dump() for iso in session.isochrones],
    }
    return store.write(
        ISOCHRONES_PATH,
        data,
        source=source,
        point=session.point.model_dump(by_alias=True),
        drive_times={str(m.id): m.drive_time_minutes for m in session.view.markers},
        mode=session.view.mode.value,
    )


@task(name="build-html", cache_policy=NO_CACHE)
def build_html(session: Session) -> str:
    """Render the map and summary into a page."""
    map_div, map_script = build_drive_time_map_html(session.layer.graphics, session.view.title)
    summary = build_summary_html(session.view, session.point)
    return render_page(session.view, map_div, map_script, summary)


@task(name="write-site", cache_policy=NO_CACHE)
def write_site(store: DataStore, html: str) -> Path:
    """Write HTML to the site directory."""
    return store.write_text(SITE_PATH, html)


# =============================================================================
# Flow
# =============================================================================


@flow(name="drive-time", log_prints=True)
async def drive_time_flow(
    x: float,
    y: float,
    wkid: int = 4326,
    drive_times: dict[int, float] | None = None,
    data_dir: Path | None = None,
) -> dict[str, Any]:
    """
    Generate drive-time polygons around (x, y) and build the site.

    This is the main Prefect flow behind ``drivetime-planner generate``.
    """
    settings = get_settings()
    store = DataStore(data_dir or settings.data_dir)

    print(f"Generating drive time areas at ({x}, {y}) wkid={wkid}...")
    session = await run_workflow(settings, x, y, wkid, drive_times)

    if session.view.error:
        print(f"Run stopped: {session.view.error}")

    record = save_isochrones(store, session, settings.service_url)
    html = build_html(session)
    output_path = write_site(store, html)

    print(f"Site built: {output_path}")
    return {
        "completed": session.completed,
        "error": session.view.error,
        "record": str(record),
        "output": str(output_path),
    }


if __name__ == "__main__":
    import asyncio

    result = asyncio.run(drive_time_flow(x=-122.6765, y=45.5231))
    print(f"Flow complete: {result}")
