"""Error taxonomy for isochrone generation.

``str(error)`` is always the message shown to the user. An empty result
from the routing service is not an error; ``IsochroneClient.solve`` returns
``None`` for it.
"""

from __future__ import annotations


class DriveTimeError(Exception):
    """Base class for all drive-time planner errors."""


class IsochroneError(DriveTimeError):
    """A failure that aborts the remainder of a generation run."""


class TransportError(IsochroneError):
    """The request could not complete or returned a non-success status."""


class ServiceError(IsochroneError):
    """The routing service answered, but reported a logical error."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class CredentialError(IsochroneError):
    """No credential could be obtained for the routing service."""
