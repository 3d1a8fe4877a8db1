"""Shared router dependencies and error translation."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException, status

from ..config import settings
from ..db.supabase import get_document_store
from ..errors import ConcurrencyConflict, NotFoundError, TransientUpstreamError, ValidationError
from ..persistence.documents import DocumentStore
from ..persistence.filesystem import FileStorage
from ..services.geo import GeocodingClient, WeatherClient
from ..services.notifications import (
    CalendarSync,
    NotificationSender,
    get_calendar_sync,
    get_notification_sender,
)
from ..services.routing.directions_client import DirectionsClient

logger = logging.getLogger(__name__)


def get_store() -> DocumentStore:
    return get_document_store()


def get_optional_directions() -> Optional[DirectionsClient]:
    if not settings.osrm_base_url:
        return None
    return DirectionsClient()


def get_directions() -> DirectionsClient:
    directions = get_optional_directions()
    if directions is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="OSRM service is not configured. Please check the HAULPLAN_OSRM_BASE_URL setting.",
        )
    return directions


def get_geocoder() -> GeocodingClient:
    return GeocodingClient()


def get_weather() -> WeatherClient:
    return WeatherClient()


def get_notifier() -> NotificationSender:
    return get_notification_sender()


def get_calendar() -> CalendarSync:
    return get_calendar_sync()


def get_file_storage() -> FileStorage:
    return FileStorage()


def http_error(exc: Exception, action: str) -> HTTPException:
    """Map a service exception to the HTTP error the client should see."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConcurrencyConflict):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{exc} The request was not applied and can be resubmitted.",
        )
    if isinstance(exc, TransientUpstreamError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    logger.exception(f"Error while trying to {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {exc}",
    )
