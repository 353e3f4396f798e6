"""The three marker slots: drive time, color and completion status.

Pure in-memory state; no I/O. Slots are created once from settings and are
only ever mutated, never replaced.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from drivetime_planner import colors
from drivetime_planner.schemas import MARKER_IDS, Marker, Rgb

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from drivetime_planner.config import Settings


def clamp(minutes: float, max_drive_time: int) -> int:
    """Round and bound ``minutes`` to ``[1, max_drive_time]``.

    NaN maps to 1, infinities to the nearest bound.
    """
    if math.isnan(minutes):
        return 1
    if not math.isfinite(minutes):
        return max_drive_time if minutes > 0 else 1
    return min(max(round(minutes), 1), max_drive_time)


class MarkerStore:
    """Holds the fixed set of marker slots (ids 1..3)."""

    def __init__(
        self,
        max_drive_time: int = 15,
        drive_times: dict[int, int] | None = None,
        color_overrides: dict[int, Sequence[int] | None] | None = None,
    ) -> None:
        if max_drive_time < 1:
            msg = f"max_drive_time must be >= 1, got {max_drive_time}"
            raise ValueError(msg)
        self.max_drive_time = max_drive_time
        drive_times = drive_times or {}
        color_overrides = color_overrides or {}
        defaults = {1: 5, 2: 10, 3: 15}
        self._markers: dict[int, Marker] = {}
        for marker_id in MARKER_IDS:
            override = color_overrides.get(marker_id)
            self._markers[marker_id] = Marker(
                id=marker_id,
                drive_time_minutes=clamp(
                    drive_times.get(marker_id, defaults[marker_id]), max_drive_time
                ),
                color=override,
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> MarkerStore:
        """Create the slots from configured defaults and color overrides."""
        return cls(
            max_drive_time=settings.max_drive_time,
            drive_times={m: settings.default_drive_times.for_marker(m) for m in MARKER_IDS},
            color_overrides={m: settings.polygon_colors.for_marker(m) for m in MARKER_IDS},
        )

    def _get(self, marker_id: int) -> Marker:
        try:
            return self._markers[marker_id]
        except KeyError:
            msg = f"Unknown marker id: {marker_id!r}"
            raise ValueError(msg) from None

    # -- drive time -----------------------------------------------------------

    def set_drive_time(self, marker_id: int, minutes: float) -> int:
        """Store ``minutes`` clamped to ``[1, max_drive_time]``; return the stored value."""
        marker = self._get(marker_id)
        marker.drive_time_minutes = clamp(minutes, self.max_drive_time)
        return marker.drive_time_minutes

    def drive_time(self, marker_id: int) -> int:
        return self._get(marker_id).drive_time_minutes

    # -- color ----------------------------------------------------------------

    def set_color(self, marker_id: int, rgb: Sequence[int] | None) -> None:
        """Store an override; malformed values resolve to the default color."""
        self._get(marker_id).color = rgb

    def get_color(self, marker_id: int) -> Rgb:
        return colors.resolve(marker_id, self._get(marker_id).color)

    # -- completion -----------------------------------------------------------

    def mark_completed(self, marker_id: int) -> None:
        self._get(marker_id).completed = True

    def completion(self) -> dict[int, bool]:
        """Completion flag per marker id."""
        return {m: self._markers[m].completed for m in MARKER_IDS}

    def reset_completion(self, marker_ids: Iterable[int] = MARKER_IDS) -> None:
        """Clear the completion flag of ``marker_ids`` (all markers by default)."""
        for marker_id in marker_ids:
            self._get(marker_id).completed = False

    def markers(self) -> list[Marker]:
        """Snapshot copies of the three slots, in id order."""
        return [self._markers[m].model_copy() for m in MARKER_IDS]
