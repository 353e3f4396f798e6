"""
Domain models for the drive-time planner.

Pydantic models for points, markers, isochrones and the display projection.
The routing service response is normalized into these by services/isochrone.py.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

#: Marker ids are fixed for the process lifetime.
MARKER_IDS: tuple[int, ...] = (1, 2, 3)

#: An 8-bit RGB color.
Rgb = tuple[int, int, int]

#: Polygon rings as returned by the routing service: ring -> vertex -> [x, y].
Rings = list[list[list[float]]]


# =============================================================================
# Core
# =============================================================================


class WorkflowMode(StrEnum):
    """How generation is triggered."""

    BATCH = "batch"  # one button, markers 1..3 in order
    INDEPENDENT = "independent"  # one button per marker


class Phase(StrEnum):
    """Workflow phase as seen by the display."""

    IDLE = "idle"
    READY = "ready"
    PROCESSING = "processing"


# =============================================================================
# Geometry
# =============================================================================


class SpatialReference(BaseModel):
    """Coordinate system identifier."""

    model_config = {"frozen": True}

    wkid: int


class Point(BaseModel):
    """A single map coordinate in a spatial reference."""

    model_config = {"frozen": True, "populate_by_name": True}

    x: float
    y: float
    spatial_reference: SpatialReference = Field(alias="spatialReference")

    @classmethod
    def of(cls, x: float, y: float, wkid: int = 4326) -> Point:
        """Build a point from bare coordinates."""
        return cls(x=x, y=y, spatialReference=SpatialReference(wkid=wkid))

    @property
    def wkid(self) -> int:
        return self.spatial_reference.wkid


# =============================================================================
# Markers and results
# =============================================================================


class Marker(BaseModel):
    """One of the three marker slots."""

    id: int = Field(..., frozen=True, ge=1, le=3)
    drive_time_minutes: int = Field(..., ge=1)
    color: Any = Field(default=None, description="Configured override, if any")
    completed: bool = False


class Isochrone(BaseModel):
    """A drive-time polygon rendered for one marker."""

    marker_id: int
    drive_time_minutes: int
    rings: Rings
    spatial_reference: SpatialReference
    color: Rgb


# =============================================================================
# Display projection
# =============================================================================


class MarkerView(BaseModel):
    """Display state for one marker row."""

    id: int
    drive_time_minutes: int
    max_drive_time: int
    color: str = Field(..., description="CSS hex color")
    completed: bool
    processing: bool = False
    error: str | None = None
    can_generate: bool = False


class WidgetView(BaseModel):
    """Everything the display needs, recomputed on every state change."""

    title: str | None
    mode: WorkflowMode
    phase: Phase
    has_map: bool
    instructions: str
    markers: list[MarkerView]
    can_generate: bool
    button_label: str
    error: str | None = None
