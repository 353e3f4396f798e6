"""Display projection: workflow state -> what the widget shows.

``project()`` is pure and cheap; callers recompute it after every change
instead of keeping their own copies of checkmarks, button state or errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from drivetime_planner.colors import rgb_to_hex
from drivetime_planner.schemas import MARKER_IDS, MarkerView, Phase, WidgetView, WorkflowMode

if TYPE_CHECKING:
    from drivetime_planner.workflow import WorkflowOrchestrator

INSTRUCTIONS = (
    "Click on the map to place a marker, then configure drive times "
    "and generate service areas"
)
NO_MAP = "Please configure a map widget"
LABEL_IDLE = "Generate Drive Time Areas"
LABEL_BUSY = "Calculating Drive Time Areas..."


def project(workflow: WorkflowOrchestrator) -> WidgetView:
    """Build the display state for ``workflow``."""
    markers = workflow.markers
    independent = workflow.mode is WorkflowMode.INDEPENDENT
    errors = workflow.errors

    rows = [
        MarkerView(
            id=m.id,
            drive_time_minutes=m.drive_time_minutes,
            max_drive_time=markers.max_drive_time,
            color=rgb_to_hex(markers.get_color(m.id)),
            completed=m.completed,
            processing=workflow.marker_processing(m.id) if independent else False,
            error=errors.get(m.id) if independent else None,
            can_generate=workflow.can_generate(m.id) if independent else False,
        )
        for m in markers.markers()
    ]

    busy = workflow.phase is Phase.PROCESSING
    return WidgetView(
        title=workflow.title,
        mode=workflow.mode,
        phase=workflow.phase,
        has_map=workflow.view is not None,
        instructions=INSTRUCTIONS if workflow.view is not None else NO_MAP,
        markers=rows,
        can_generate=(
            any(workflow.can_generate(m) for m in MARKER_IDS)
            if independent
            else workflow.can_generate()
        ),
        button_label=LABEL_BUSY if busy and not independent else LABEL_IDLE,
        error=workflow.last_error,
    )
