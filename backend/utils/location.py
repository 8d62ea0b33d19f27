import logging
import math
import os
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

Coordinate = Tuple[float, float]


def calculate_distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in kilometers between two (lat, lng) pairs using the Haversine formula."""
    lat1, lng1 = a
    lat2, lng2 = b
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # min() guards asin/atan2 against h drifting past 1.0 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


def destination_point(origin: Coordinate, bearing_deg: float, distance_km: float) -> Coordinate:
    """Point reached by travelling distance_km from origin along an initial bearing."""
    lat1 = math.radians(origin[0])
    lng1 = math.radians(origin[1])
    bearing = math.radians(bearing_deg)
    angular = distance_km / EARTH_RADIUS_KM

    lat2 = math.asin(
        math.sin(lat1) * math.cos(angular)
        + math.cos(lat1) * math.sin(angular) * math.cos(bearing)
    )
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )

    lng_deg = (math.degrees(lng2) + 540) % 360 - 180
    return (math.degrees(lat2), lng_deg)


def format_distance(km: float) -> str:
    if km < 1:
        return f"{int(round(km * 1000))}m away"
    return f"{km:.1f}km away"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lng box, inclusive on every edge."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


def get_location_name(lat: float, lng: float) -> Optional[str]:
    """Reverse geocode coordinates to a place name via the Mapbox Geocoding API.

    Returns None when no MAPBOX_ACCESS_TOKEN is configured or the lookup fails,
    so callers can leave the address empty.
    """
    mapbox_token = os.getenv("MAPBOX_ACCESS_TOKEN")
    if not mapbox_token:
        return None

    try:
        url = f"https://api.mapbox.com/geocoding/v5/mapbox.places/{lng},{lat}.json"
        params = {
            "access_token": mapbox_token,
            "types": "place",
        }

        response = requests.get(url, params=params, timeout=10)
        response.raise_for_status()
        data = response.json()

        if not data.get("features"):
            logger.info("No place found for coordinates %s, %s", lat, lng)
            return None

        feature = data["features"][0]
        name = feature.get("place_name") or feature.get("text")
        logger.info("Found location %s for coordinates %s, %s", name, lat, lng)
        return name

    except (requests.RequestException, ValueError, KeyError) as e:
        logger.warning("Mapbox geocoding error for %s, %s: %s", lat, lng, e)
        return None
