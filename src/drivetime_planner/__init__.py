"""Drive-Time Planner - isochrone (service area) polygons around a map point.

Architecture::

    config.py       Settings (pydantic-settings, DRIVETIME_* env vars)
    colors.py       Marker id -> RGB color (configured override or default)
    markers.py      The three marker slots (drive time, color, completion)
    services/       HTTP client, credential providers, routing service client
    workflow.py     The generation state machine (click -> generate -> render)
    view.py         Pure projection of workflow state for display
    mapview.py      Map collaborator protocols + headless graphics layer
    renderers/      Pure data -> HTML (Leaflet map, summary table)
    flows/          Prefect orchestration (headless run, persist, build site)

Data flow: click -> workflow -> services.isochrone -> mapview -> renderers
"""

__version__ = "0.1.0"

from drivetime_planner.config import Settings
from drivetime_planner.schemas import Point

__all__ = ["Point", "Settings", "__version__"]
