"""Map collaborators: what the workflow needs from a map, and a headless one.

The workflow never draws anything itself. It talks to a ``MapView`` (clear,
draw a point, draw a filled polygon) and listens to a ``ClickSource``.
``GraphicsLayer`` implements both in memory; it records graphics in draw
order so they can be rendered to HTML afterwards or inspected in tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from drivetime_planner.colors import POINT_OUTLINE
from drivetime_planner.schemas import Point, Rgb, Rings

logger = logging.getLogger(__name__)

ClickHandler = Callable[[Point], None]

FILL_OPACITY = 0.25
OUTLINE_WIDTH = 2
POINT_SIZE = 12


class Subscription(Protocol):
    def remove(self) -> None: ...


class MapView(Protocol):
    """Drawing surface. All calls are fire-and-forget."""

    @property
    def wkid(self) -> int: ...

    def clear(self) -> None: ...

    def render_point(self, point: Point, color: Rgb) -> None: ...

    def render_polygon(
        self,
        rings: Rings,
        wkid: int,
        color: Rgb,
        fill_opacity: float = FILL_OPACITY,
        outline_width: float = OUTLINE_WIDTH,
    ) -> None: ...


class ClickSource(Protocol):
    def on_click(self, handler: ClickHandler) -> Subscription: ...


class InteractiveMap(MapView, ClickSource, Protocol):
    """A map the workflow can both draw on and listen to."""


# =============================================================================
# Headless implementation
# =============================================================================


@dataclass
class PointGraphic:
    """Circle marker at the clicked point."""

    point: Point
    color: Rgb
    outline: Rgb = POINT_OUTLINE
    outline_width: float = OUTLINE_WIDTH
    size: int = POINT_SIZE


@dataclass
class PolygonGraphic:
    """Filled drive-time polygon."""

    rings: Rings
    wkid: int
    color: Rgb
    fill_opacity: float = FILL_OPACITY
    outline_width: float = OUTLINE_WIDTH


Graphic = PointGraphic | PolygonGraphic


@dataclass
class _Handle:
    layer: GraphicsLayer
    handler: ClickHandler

    def remove(self) -> None:
        if self.handler in self.layer._handlers:
            self.layer._handlers.remove(self.handler)


@dataclass
class GraphicsLayer:
    """In-memory map view and click source."""

    wkid: int = 4326
    graphics: list[Graphic] = field(default_factory=list)
    _handlers: list[ClickHandler] = field(default_factory=list, repr=False)

    # -- MapView ----------------------------------------------------------------

    def clear(self) -> None:
        self.graphics.clear()

    def render_point(self, point: Point, color: Rgb) -> None:
        self.graphics.append(PointGraphic(point=point, color=color))

    def render_polygon(
        self,
        rings: Rings,
        wkid: int,
        color: Rgb,
        fill_opacity: float = FILL_OPACITY,
        outline_width: float = OUTLINE_WIDTH,
    ) -> None:
        self.graphics.append(
            PolygonGraphic(
                rings=rings,
                wkid=wkid,
                color=color,
                fill_opacity=fill_opacity,
                outline_width=outline_width,
            )
        )

    # -- ClickSource ------------------------------------------------------------

    def on_click(self, handler: ClickHandler) -> Subscription:
        self._handlers.append(handler)
        return _Handle(self, handler)

    def click(self, x: float, y: float, wkid: int | None = None) -> Point:
        """Simulate a user click and dispatch it to subscribers."""
        point = Point.of(x, y, wkid if wkid is not None else self.wkid)
        logger.debug("Map click at (%s, %s) wkid=%s", point.x, point.y, point.wkid)
        for handler in list(self._handlers):
            handler(point)
        return point

    @property
    def polygons(self) -> list[PolygonGraphic]:
        return [g for g in self.graphics if isinstance(g, PolygonGraphic)]

    @property
    def points(self) -> list[PointGraphic]:
        return [g for g in self.graphics if isinstance(g, PointGraphic)]
