"""
Application settings.

Read once at startup from ``DRIVETIME_*`` environment variables (or a
``.env`` file). Nested values use ``__``, e.g.::

    DRIVETIME_MAX_DRIVE_TIME=30
    DRIVETIME_DEFAULT_DRIVE_TIMES__MARKER2=20
    DRIVETIME_POLYGON_COLORS__MARKER1='[10, 20, 30]'
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from drivetime_planner.schemas import WorkflowMode

SERVICE_AREA_URL = (
    "https://route-api.arcgis.com/arcgis/rest/services/World/ServiceAreas/"
    "NAServer/ServiceArea_World/solveServiceArea"
)
PORTAL_URL = "https://www.arcgis.com"


class MarkerDriveTimes(BaseModel):
    """Initial drive time (minutes) per marker."""

    marker1: int = 5
    marker2: int = 10
    marker3: int = 15

    def for_marker(self, marker_id: int) -> int:
        return int(getattr(self, f"marker{marker_id}"))


class MarkerColors(BaseModel):
    """Per-marker RGB overrides. Malformed values fall back to the defaults."""

    marker1: list[Any] | None = None
    marker2: list[Any] | None = None
    marker3: list[Any] | None = None

    def for_marker(self, marker_id: int) -> Any:
        return getattr(self, f"marker{marker_id}")


class Settings(BaseSettings):
    """Drive-time planner configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DRIVETIME_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "drivetime-planner"
    app_env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Widget
    widget_title: str | None = None
    mode: WorkflowMode = WorkflowMode.BATCH
    max_drive_time: int = Field(default=15, ge=1)
    default_drive_times: MarkerDriveTimes = Field(default_factory=MarkerDriveTimes)
    polygon_colors: MarkerColors = Field(default_factory=MarkerColors)

    # Routing service
    service_url: str = SERVICE_AREA_URL
    portal_url: str = PORTAL_URL
    api_key: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    request_timeout: float = 30.0

    # Local output
    api_port: int = 8000
    data_dir: Path = Path("data")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once)."""
    return Settings()
