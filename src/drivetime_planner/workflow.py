"""
Drive-time generation workflow.

The state machine behind the widget::

    IDLE --click--> READY --generate()--> PROCESSING --done/failed--> READY
      ^               ^                        |
      +---------------+-------- click ---------+

A click is legal in every phase. It replaces the point, clears errors and
completion flags, and makes any in-flight run stale. Each run remembers the
click generation it started under and, after every await, drops its results
if a newer click has happened since.

Starting a run resets the completion flags of the markers it solves and
takes their previous polygons off the map, so a second run at the same
point only shows what that run produced.

Batch mode solves markers 1, 2, 3 strictly in order and stops at the first
failure. Independent mode solves one marker per ``generate(marker_id)``
call, each with its own processing flag and error slot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from drivetime_planner.errors import IsochroneError
from drivetime_planner.schemas import (
    MARKER_IDS,
    Isochrone,
    Phase,
    Point,
    SpatialReference,
    WidgetView,
    WorkflowMode,
)
from drivetime_planner.view import project

if TYPE_CHECKING:
    from collections.abc import Sequence

    from drivetime_planner.markers import MarkerStore
    from drivetime_planner.mapview import InteractiveMap, Subscription
    from drivetime_planner.services.credentials import Credential, CredentialProvider
    from drivetime_planner.services.isochrone import IsochroneClient

logger = logging.getLogger(__name__)

Listener = Callable[[WidgetView], None]


class WorkflowOrchestrator:
    """Owns the clicked point, the run state and the map graphics."""

    def __init__(
        self,
        markers: MarkerStore,
        credentials: CredentialProvider,
        client: IsochroneClient,
        *,
        mode: WorkflowMode = WorkflowMode.BATCH,
        title: str | None = None,
    ) -> None:
        self.markers = markers
        self.credentials = credentials
        self.client = client
        self.mode = mode
        self.title = title

        self.view: InteractiveMap | None = None
        self._subscription: Subscription | None = None
        self._listeners: list[Listener] = []

        self.clicked_point: Point | None = None
        self._click_generation = 0
        # Batch mode uses the None key; independent mode keys by marker id.
        self._processing: dict[int | None, bool] = {}
        self._errors: dict[int | None, str] = {}
        # Polygons currently on the map, by marker id.
        self._drawn: dict[int, Isochrone] = {}

    # =========================================================================
    # Map view wiring
    # =========================================================================

    def attach(self, view: InteractiveMap) -> None:
        """Use ``view`` for drawing and subscribe to its clicks (once per view)."""
        if view is self.view:
            return
        self.detach()
        self.view = view
        self._subscription = view.on_click(self.on_map_click)
        self._notify()

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.remove()
        self._subscription = None
        self.view = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_processing(self) -> bool:
        """True while any run is in flight."""
        return any(self._processing.values())

    @property
    def last_error(self) -> str | None:
        """Batch-mode error, or the first per-marker error in independent mode."""
        if None in self._errors:
            return self._errors[None]
        for marker_id in MARKER_IDS:
            if marker_id in self._errors:
                return self._errors[marker_id]
        return None

    @property
    def errors(self) -> dict[int, str]:
        """Per-marker errors (independent mode)."""
        return {k: v for k, v in self._errors.items() if k is not None}

    def marker_processing(self, marker_id: int) -> bool:
        return self._processing.get(marker_id, False)

    @property
    def phase(self) -> Phase:
        if self.clicked_point is None:
            return Phase.IDLE
        if self.is_processing:
            return Phase.PROCESSING
        return Phase.READY

    def can_generate(self, marker_id: int | None = None) -> bool:
        if self.clicked_point is None:
            return False
        if self.mode is WorkflowMode.BATCH:
            return not self.is_processing
        return marker_id is not None and not self.marker_processing(marker_id)

    # =========================================================================
    # Listeners
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a fresh view after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = project(self)
        for listener in list(self._listeners):
            listener(snapshot)

    # =========================================================================
    # User input
    # =========================================================================

    def on_map_click(self, point: Point) -> None:
        """Start over at ``point``; any run still in flight becomes stale."""
        self._click_generation += 1
        self.clicked_point = point
        self._errors.clear()
        self._processing.clear()
        self.markers.reset_completion()
        self._drawn.clear()
        self._redraw(point)
        logger.info("Point set at (%s, %s) wkid=%s", point.x, point.y, point.wkid)
        self._notify()

    def set_drive_time(self, marker_id: int, minutes: float) -> int:
        value = self.markers.set_drive_time(marker_id, minutes)
        self._notify()
        return value

    def set_color(self, marker_id: int, rgb: Sequence[int] | None) -> None:
        self.markers.set_color(marker_id, rgb)
        self._notify()

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate(self, marker_id: int | None = None) -> list[Isochrone]:
        """
        Solve and draw drive-time polygons for the current point.

        Batch mode: call without ``marker_id``; markers 1..3 are solved in
        order, stopping at the first failure. Independent mode: pass the
        marker to solve.

        A no-op (returns ``[]``) when there is no point or the run's slot is
        already processing. Failures are recorded as the error message, not
        raised.

        Raises:
            ValueError: If ``marker_id`` does not fit the mode.
        """
        if self.mode is WorkflowMode.BATCH:
            if marker_id is not None:
                msg = "marker_id is not accepted in batch mode"
                raise ValueError(msg)
            targets: tuple[int, ...] = MARKER_IDS
        else:
            if marker_id not in MARKER_IDS:
                msg = f"independent mode needs a marker id in {MARKER_IDS}, got {marker_id!r}"
                raise ValueError(msg)
            targets = (marker_id,)

        slot = marker_id
        if not self.can_generate(marker_id):
            return []
        point = self.clicked_point
        if point is None:
            return []

        generation = self._click_generation
        self._processing[slot] = True
        self._errors.pop(slot, None)
        self.markers.reset_completion(targets)
        for target in targets:
            self._drawn.pop(target, None)
        self._redraw(point)
        self._notify()

        rendered: list[Isochrone] = []
        try:
            await self._run(point, targets, slot, generation, rendered)
        finally:
            if generation == self._click_generation:
                self._processing.pop(slot, None)
                self._notify()
        return rendered

    def _redraw(self, point: Point) -> None:
        """Clear the map, then draw the point and the polygons still current."""
        if self.view is None:
            return
        self.view.clear()
        self.view.render_point(point, self.markers.get_color(1))
        for marker_id in sorted(self._drawn):
            iso = self._drawn[marker_id]
            self.view.render_polygon(iso.rings, iso.spatial_reference.wkid, iso.color)

    def _is_stale(self, generation: int) -> bool:
        return generation != self._click_generation

    async def _run(
        self,
        point: Point,
        targets: tuple[int, ...],
        slot: int | None,
        generation: int,
        rendered: list[Isochrone],
    ) -> None:
        wkid = point.wkid
        try:
            credential: Credential = await self.credentials.get_credential(
                self.client.service_url
            )
        except IsochroneError as e:
            if not self._is_stale(generation):
                self._fail(slot, e)
            return
        if self._is_stale(generation):
            logger.info("Discarding stale run (credential)")
            return

        for marker_id in targets:
            drive_time = self.markers.drive_time(marker_id)
            try:
                rings = await self.client.solve(point, wkid, drive_time, credential)
            except IsochroneError as e:
                if not self._is_stale(generation):
                    self._fail(slot, e)
                else:
                    logger.info("Discarding stale failure for marker %s", marker_id)
                return

            if self._is_stale(generation):
                logger.info("Discarding stale result for marker %s", marker_id)
                return
            if rings is None:
                continue

            color = self.markers.get_color(marker_id)
            if self.view is not None:
                self.view.render_polygon(rings, wkid, color)
            self.markers.mark_completed(marker_id)
            isochrone = Isochrone(
                marker_id=marker_id,
                drive_time_minutes=drive_time,
                rings=rings,
                spatial_reference=SpatialReference(wkid=wkid),
                color=color,
            )
            self._drawn[marker_id] = isochrone
            rendered.append(isochrone)
            logger.info("Marker %s: %s min polygon drawn", marker_id, drive_time)
            self._notify()

    def _fail(self, slot: int | None, error: IsochroneError) -> None:
        self._errors[slot] = str(error)
        logger.error("Drive time generation failed: %s", error)
