"""
GPS drop pin distance service.
Uses Haversine formula to calculate distance between a pin and its service location.
"""
import math
from typing import Optional, Tuple
from ..config import settings


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    # Earth radius in meters
    R = 6371000

    # Convert to radians
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    # Haversine formula
    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def valid_coordinates(lat: Optional[float], lng: Optional[float]) -> bool:
    if lat is None or lng is None:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def pin_distance(
    pin_lat: float,
    pin_lng: float,
    location_lat: Optional[float],
    location_lng: Optional[float],
    radius_m: Optional[float] = None,
) -> Tuple[Optional[float], bool]:
    """
    Distance from a drop pin to its service location.

    Args:
        pin_lat: Pin latitude
        pin_lng: Pin longitude
        location_lat: Service location latitude (may be missing)
        location_lng: Service location longitude (may be missing)
        radius_m: Warning radius in meters (default from settings)

    Returns:
        Tuple of (distance_m, far_from_location)
        distance_m is None when the location has no coordinates
    """
    if not valid_coordinates(location_lat, location_lng):
        return None, False

    if radius_m is None:
        radius_m = settings.pin_warning_radius_m

    distance = haversine_distance(pin_lat, pin_lng, location_lat, location_lng)
    return round(distance, 1), distance > radius_m
