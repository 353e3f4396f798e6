"""
Drive-time (service area) polygons.

Uses the ArcGIS World Service Area solver:
https://developers.arcgis.com/rest/network/api-reference/service-area-asynchronous-service.htm

One facility (the clicked point) and one break (the drive time) per request;
polygons come back in the caller's spatial reference.

Example:
    client = IsochroneClient(http_client)
    rings = await client.solve(point, 4326, 10, credential)
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from drivetime_planner.config import SERVICE_AREA_URL
from drivetime_planner.errors import ServiceError, TransportError

if TYPE_CHECKING:
    from drivetime_planner.schemas import Point, Rings
    from drivetime_planner.services.credentials import Credential

logger = logging.getLogger(__name__)

INVALID_RESPONSE = "Routing service returned an invalid response"


def build_params(
    point: Point, wkid: int, drive_time_minutes: int, token: str
) -> dict[str, str]:
    """Query parameters for a single-facility, single-break solve."""
    facilities = {
        "features": [
            {
                "geometry": {
                    "x": point.x,
                    "y": point.y,
                    "spatialReference": {"wkid": wkid},
                }
            }
        ]
    }
    return {
        "f": "json",
        "facilities": json.dumps(facilities),
        "defaultBreaks": str(drive_time_minutes),
        "returnPolygons": "true",
        "outSR": str(wkid),
        "token": token,
    }


def parse_response(payload: dict[str, Any]) -> Rings | None:
    """
    Extract the first polygon's rings from a solve response.

    Returns None when the response carries no polygon.

    Raises:
        ServiceError: If the payload carries an ``error`` object.
        TransportError: If the polygon part of the payload has an unexpected shape.
    """
    if payload.get("error"):
        error = payload["error"]
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message") or f"Routing service error (code {code})"
        else:
            code, message = None, str(error)
        raise ServiceError(message, code=code if isinstance(code, int) else None)

    polygons = payload.get("saPolygons") or {}
    if not isinstance(polygons, dict):
        raise TransportError(INVALID_RESPONSE)
    features = polygons.get("features") or []
    if not isinstance(features, list):
        raise TransportError(INVALID_RESPONSE)
    if not features:
        return None
    feature = features[0]
    if not isinstance(feature, dict):
        raise TransportError(INVALID_RESPONSE)
    geometry = feature.get("geometry") or {}
    if not isinstance(geometry, dict):
        raise TransportError(INVALID_RESPONSE)
    rings = geometry.get("rings")
    if not rings:
        return None
    if not isinstance(rings, list):
        raise TransportError(INVALID_RESPONSE)
    return rings


class IsochroneClient:
    """Issues one solve request per call. Never retries."""

    def __init__(self, client: httpx.AsyncClient, service_url: str = SERVICE_AREA_URL) -> None:
        self.client = client
        self.service_url = service_url

    async def solve(
        self,
        point: Point,
        wkid: int,
        drive_time_minutes: int,
        credential: Credential,
    ) -> Rings | None:
        """
        Solve one drive-time polygon around ``point``.

        Args:
            point: Facility location.
            wkid: Spatial reference for both the facility and the output polygon.
            drive_time_minutes: The single break value.
            credential: Bearer credential for the service.

        Returns:
            Polygon rings in ``wkid``, unmodified, or None if the service
            returned no polygon.

        Raises:
            TransportError: The call failed, timed out, returned a non-2xx
                status, or returned a body that is not a well-formed solve
                response.
            ServiceError: The service reported an error in its payload.
        """
        params = build_params(point, wkid, drive_time_minutes, credential.token)
        logger.debug(
            "Solving service area at (%s, %s) wkid=%s for %s min",
            point.x,
            point.y,
            wkid,
            drive_time_minutes,
        )
        try:
            resp = await self.client.get(self.service_url, params=params)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Routing service returned %s", e.response.status_code)
            msg = f"Routing service returned HTTP {e.response.status_code}"
            raise TransportError(msg) from e
        except httpx.HTTPError as e:
            detail = str(e) or type(e).__name__
            logger.warning("Could not reach routing service: %s", detail)
            msg = f"Could not reach routing service: {detail}"
            raise TransportError(msg) from e
        except ValueError as e:
            raise TransportError(INVALID_RESPONSE) from e

        if not isinstance(payload, dict):
            raise TransportError(INVALID_RESPONSE)

        try:
            rings = parse_response(payload)
        except ServiceError as e:
            logger.warning("Routing service error: %s", e)
            raise

        if rings is None:
            logger.info("No polygon returned for %s min break", drive_time_minutes)
        return rings
