"""Exception taxonomy shared by the services and API layer."""

from __future__ import annotations


class HaulplanError(Exception):
    """Base class for errors raised by the scheduling core."""


class ValidationError(HaulplanError, ValueError):
    """Malformed input rejected before anything is written."""


class NotFoundError(HaulplanError, LookupError):
    """A referenced profile, order, truck or client does not exist."""


class TransientUpstreamError(HaulplanError, ConnectionError):
    """A directions, geocoding or weather call failed after its retries."""


class ConcurrencyConflict(HaulplanError, RuntimeError):
    """A document-store transaction kept conflicting until its attempts ran out."""
