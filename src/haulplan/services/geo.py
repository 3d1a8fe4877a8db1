"""Google geocoding and hourly weather clients."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from ..config import settings
from ..errors import TransientUpstreamError
from ..models.domain import Location
from .geospatial import parse_coordinates

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Forecast:
    condition: str
    temperature_c: int
    condition_type: str = ""


class _GoogleClient:
    """Shared GET-with-retry for the Google endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        attempt = 0
        with httpx.Client(timeout=self.timeout) as client:
            while True:
                try:
                    response = client.get(url, params={**params, "key": self.api_key})
                    response.raise_for_status()
                    return response.json()
                except (httpx.HTTPError, ValueError) as error:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise TransientUpstreamError(f"{url} unavailable: {error}") from error
                    time.sleep(settings.http_backoff_seconds * attempt)


class GeocodingClient(_GoogleClient):
    def geocode(self, address: str) -> Optional[Location]:
        """Resolve an address (or a pasted maps link) to a located ``Location``.

        Returns None when nothing matches or no API key is configured.
        """
        if not address or not address.strip():
            return None
        coordinates = parse_coordinates(address)
        if coordinates is not None:
            return Location(address=address.strip(), latitude=coordinates[0], longitude=coordinates[1])
        if not self.configured:
            logger.warning("Google Maps API key is not configured; cannot geocode")
            return None

        data = self._get_json(
            settings.geocoding_url,
            {"address": address, "language": settings.provider_language},
        )
        if data.get("status") != "OK" or not data.get("results"):
            logger.info(f"Geocode returned {data.get('status')} for {address!r}: {data.get('error_message', '')}")
            return None
        result = data["results"][0]
        point = result["geometry"]["location"]
        return Location(
            address=result.get("formatted_address", address),
            latitude=float(point["lat"]),
            longitude=float(point["lng"]),
        )


def _start_time(entry: dict[str, Any]) -> datetime:
    return datetime.fromisoformat(entry["interval"]["startTime"].replace("Z", "+00:00"))


class WeatherClient(_GoogleClient):
    def forecast_at(self, location: Location, when: datetime) -> Optional[Forecast]:
        """Hourly forecast entry closest to ``when``."""
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        if not self.configured:
            logger.warning("Google Maps API key is not configured; no weather forecast")
            return None
        latitude, longitude = location.as_tuple()
        data = self._get_json(
            settings.weather_url,
            {
                "location.latitude": latitude,
                "location.longitude": longitude,
                "languageCode": settings.provider_language,
            },
        )
        hours = [entry for entry in data.get("forecastHours") or [] if entry.get("interval")]
        if not hours:
            logger.info(f"No hourly forecast returned for {location.address!r}")
            return None

        closest = min(hours, key=lambda entry: abs((_start_time(entry) - when).total_seconds()))
        condition = closest.get("weatherCondition")
        if not condition:
            return None
        description = (condition.get("description") or {}).get("text") or "Tempo não disponível"
        degrees = (closest.get("temperature") or {}).get("degrees")
        if degrees is None:
            return None
        return Forecast(
            condition=description,
            temperature_c=round(degrees),
            condition_type=condition.get("type") or "",
        )
