"""Marker colors: configured override or fixed default per marker id."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from drivetime_planner.schemas import MARKER_IDS, Rgb

DEFAULT_COLORS: dict[int, Rgb] = {
    1: (51, 51, 204),  # blue
    2: (204, 51, 51),  # red
    3: (51, 204, 51),  # green
}

#: Outline color of the clicked-point marker symbol.
POINT_OUTLINE: Rgb = (255, 255, 255)


def _is_channel(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 255


def is_well_formed(value: Any) -> bool:
    """Whether ``value`` is exactly three integers in 0-255."""
    if isinstance(value, str | bytes) or not isinstance(value, Sequence):
        return False
    return len(value) == 3 and all(_is_channel(v) for v in value)


def resolve(marker_id: int, override: Any = None) -> Rgb:
    """
    Return the display color for a marker.

    A well-formed ``override`` wins; anything else (missing, wrong length,
    out of range) falls back to the default table.

    Raises:
        ValueError: If ``marker_id`` is not one of 1, 2, 3.
    """
    if marker_id not in MARKER_IDS:
        msg = f"Unknown marker id: {marker_id!r}"
        raise ValueError(msg)
    if override is not None and is_well_formed(override):
        r, g, b = override
        return (r, g, b)
    return DEFAULT_COLORS[marker_id]


def rgb_to_hex(rgb: Rgb) -> str:
    """(51, 51, 204) -> '#3333cc'."""
    return "#{:02x}{:02x}{:02x}".format(*rgb)
