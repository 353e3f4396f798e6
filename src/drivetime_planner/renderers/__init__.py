"""Pure rendering functions: structured data -> HTML strings.

All renderers follow the same pattern:
  - Input: graphics, view models or plain dicts
  - Output: str (HTML fragment, not a full page), except ``render_page``
  - No side effects, no I/O, no Prefect decorators

Used by flows/generate.py which orchestrates the headless run.

Public API:
  - drive_time_map: build_drive_time_map_html, to_lon_lat
  - summary: build_summary_html, render_page
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jinja2

# Shared Jinja2 environment for all renderers
_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
_jinja_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=True,
)


def render_template(template_name: str, **kwargs: Any) -> str:
    """Render a Jinja2 template by name."""
    return _jinja_env.get_template(template_name).render(**kwargs)
