"""Geospatial helper functions."""

from __future__ import annotations

import math
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

EARTH_RADIUS_KM = 6371.0

_COORDINATE_PAIR = re.compile(r"(-?\d+\.\d+),\s*(-?\d+\.\d+)")
_PATH_COORDINATES = re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+)")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _pair(match: Optional[re.Match]) -> Optional[tuple[float, float]]:
    if match is None:
        return None
    return float(match.group(1)), float(match.group(2))


def parse_coordinates(text: str) -> Optional[tuple[float, float]]:
    """Extract (lat, lng) from a maps link or a raw "lat, lng" string.

    Looks at the ``q`` and ``ll`` query parameters and the ``/@lat,lng`` path
    segment of links before falling back to the first pair in the text.
    """
    if not text:
        return None
    parsed = urlparse(text.strip())
    if parsed.scheme in ("http", "https"):
        params = parse_qs(parsed.query)
        for key in ("q", "ll"):
            for value in params.get(key, []):
                found = _pair(_COORDINATE_PAIR.search(value))
                if found:
                    return found
        found = _pair(_PATH_COORDINATES.search(parsed.path))
        if found:
            return found
    return _pair(_COORDINATE_PAIR.search(text))
