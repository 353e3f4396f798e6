"""Run records on disk.

Every headless run writes its polygons as JSON wrapped in a metadata
envelope (``source``, ``fetched_at`` and the run parameters), next to the
rendered site:

  - derived/isochrones.json: polygons and per-marker status of the last run
  - derived/site/: the HTML page
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003
from typing import Any


class DataStore:
    """Writes enveloped JSON files under one base directory and reads them back."""

    def __init__(self, base_dir: Path) -> None:
        self.base = base_dir
        self.derived = base_dir / "derived"
        self.site = self.derived / "site"

    def read_raw(self, path: Path) -> dict[str, Any] | None:
        """Read the full envelope (meta + data) from a JSON file."""
        full = self._resolve(path)
        if not full.exists():
            return None
        with full.open() as f:
            result: dict[str, Any] = json.load(f)
        return result

    def write(
        self,
        path: Path,
        data: Any,
        source: str,
        **params: Any,
    ) -> Path:
        """Write data wrapped in a metadata envelope.

        Args:
            path: Relative path under base_dir (e.g. ``derived/isochrones.json``).
            data: Payload to store under the ``data`` key.
            source: Data source identifier (e.g. the routing service URL).
            **params: Extra metadata fields (point, drive times, ...).

        Returns:
            Absolute path of the written file.
        """
        full = self._resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)

        meta: dict[str, Any] = {
            "source": source,
            "fetched_at": datetime.now(UTC).isoformat(),
        }
        if params:
            meta.update(params)

        with full.open("w") as f:
            json.dump({"meta": meta, "data": data}, f, indent=2)
        return full

    def write_text(self, path: Path, text: str) -> Path:
        """Write a plain text file (HTML) under the base directory."""
        full = self._resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(text)
        return full

    def _resolve(self, path: Path) -> Path:
        full = self.base / path if not path.is_absolute() else path
        try:
            full.resolve().relative_to(self.base.resolve())
        except ValueError:
            msg = f"Path escapes store base directory: {path}"
            raise ValueError(msg) from None
        return full
