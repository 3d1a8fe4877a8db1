"""HTTP client for point-to-point driving directions (OSRM route service)."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from ...config import settings
from ...errors import TransientUpstreamError
from ...models.domain import Location

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Directions:
    distance_meters: float
    duration_seconds: float

    @property
    def distance_km(self) -> float:
        return self.distance_meters / 1000.0

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / 60.0


class DirectionsClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.http_backoff_seconds

    def _get_client(self) -> httpx.Client:
        # One client per call; compute_route is invoked from worker threads.
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)))

    def compute_route(self, origin: Location, destination: Location) -> Directions:
        """Driving distance and duration from ``origin`` to ``destination``.

        Raises TransientUpstreamError once the retries are spent.
        """
        (origin_lat, origin_lon), (dest_lat, dest_lon) = origin.as_tuple(), destination.as_tuple()
        # OSRM expects "lon,lat;lon,lat"
        coordinate_str = f"{origin_lon},{origin_lat};{dest_lon},{dest_lat}"
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        params = {"overview": "false", "steps": "false"}

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if data.get("code") != "Ok" or not data.get("routes"):
                        raise ValueError(f"OSRM route request failed: {data.get('message', data.get('code'))}")
                    route = data["routes"][0]
                    return Directions(
                        distance_meters=float(route["distance"]),
                        duration_seconds=float(route["duration"]),
                    )
                except (httpx.HTTPError, ValueError, KeyError) as error:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Directions {origin.address!r} -> {destination.address!r} failed: {error}")
                        raise TransientUpstreamError(f"Directions unavailable: {error}") from error
                    wait_time = self.backoff_seconds * attempt
                    logger.debug(f"Directions request failed, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
        finally:
            client.close()


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health by requesting a short route."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "-46.633308,-23.550520;-46.625290,-23.533773"
        url = f"{base}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
