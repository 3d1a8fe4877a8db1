"""Best-effort traffic and weather advisory for a planned route.

Nothing here feeds back into scheduling. Every public function returns a
usable value even when the geocoder, the directions provider or the weather
service is down.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..config import settings
from ..models.domain import Location
from .geo import Forecast, GeocodingClient, WeatherClient
from .routing.sequencer import DirectionsProvider
from .timezones import business_zone, localize

logger = logging.getLogger(__name__)

ADVISORY_UNAVAILABLE = "Traffic advisory unavailable."

_WET_CONDITIONS = ("RAIN", "SHOWER", "STORM", "SNOW", "HAIL")
_RUSH_HOURS = ((7, 9), (17, 19))


def format_duration(minutes: float) -> str:
    """'3h 45min' style duration."""
    total = int(round(minutes))
    hours, rest = divmod(total, 60)
    if hours and rest:
        return f"{hours}h {rest}min"
    if hours:
        return f"{hours}h"
    return f"{rest}min"


def _is_rush_hour(moment: datetime) -> bool:
    local = moment.astimezone(business_zone())
    if local.weekday() >= 5:
        return False
    return any(start <= local.hour < end for start, end in _RUSH_HOURS)


def _verdict(departure: datetime, weather: Optional[Forecast]) -> str:
    wet = weather is not None and any(token in weather.condition_type.upper() for token in _WET_CONDITIONS)
    rush = _is_rush_hour(departure)
    if wet and rush:
        return "Chaotic"
    if wet or rush:
        return "Attention"
    return "Smooth"


class RouteAnnotator:
    def __init__(
        self,
        geocoder: GeocodingClient,
        weather: WeatherClient,
        directions: Optional[DirectionsProvider] = None,
    ) -> None:
        self.geocoder = geocoder
        self.weather = weather
        self.directions = directions

    def forecast(self, location: Location, when: datetime) -> Optional[Forecast]:
        """Weather at ``location`` closest to ``when``, or None."""
        try:
            if not location.has_coordinates:
                located = self.geocoder.geocode(location.address)
                if located is None:
                    return None
                location = located
            return self.weather.forecast_at(location, when)
        except Exception as exc:
            logger.warning(f"Weather forecast unavailable for {location.address!r}: {exc}")
            return None

    def annotate_route(self, addresses: Sequence[str], departure: datetime, total_duration_min: float) -> str:
        """Advisory text for a route visiting ``addresses`` in order."""
        if not addresses:
            return ADVISORY_UNAVAILABLE
        departure = localize(departure)
        try:
            origin = self.geocoder.geocode(addresses[0])
            if origin is None:
                return ADVISORY_UNAVAILABLE

            weather = self.weather.forecast_at(origin, departure)
            first_leg = None
            if self.directions is not None and len(addresses) > 1:
                destination = self.geocoder.geocode(addresses[1])
                if destination is not None:
                    first_leg = self.directions.compute_route(origin, destination).duration_minutes
        except Exception as exc:
            logger.warning(f"Traffic advisory unavailable: {exc}")
            return ADVISORY_UNAVAILABLE

        local = departure.astimezone(business_zone())
        lines = [
            f"Verdict: {_verdict(departure, weather)}",
            f"Departure: {local:%d/%m/%Y %H:%M} ({settings.business_timezone}), {len(addresses)} stops",
            f"Estimated total duration: {format_duration(total_duration_min)}",
        ]
        if first_leg is not None:
            lines.append(f"First leg: {format_duration(first_leg)}")
        if weather is not None:
            lines.append(f"Weather at departure: {weather.condition}, {weather.temperature_c}°C")
        else:
            lines.append("Weather at departure: forecast not available")
        if _is_rush_hour(departure):
            lines.append("Tip: departure falls in rush hour; allow extra time on the first leg.")
        return "\n".join(lines)
