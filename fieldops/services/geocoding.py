"""
Mapbox geocoding client
Forward geocoding of free-text addresses into coordinate suggestions
"""
import httpx
from typing import Optional, Dict, List, Any
from urllib.parse import quote

import structlog

from ..config import settings


log = structlog.get_logger()


class GeocodingNotConfigured(RuntimeError):
    pass


class GeocodingError(RuntimeError):
    pass


class MapboxGeocoder:
    """Client for the Mapbox forward geocoding API"""

    def __init__(self, token: Optional[str] = None, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.token = token or settings.mapbox_geocoding_token
        self.base_url = (base_url or settings.mapbox_base_url).rstrip("/")
        self.timeout = timeout or settings.geocoding_timeout_s

        if not self.token:
            raise GeocodingNotConfigured("Mapbox geocoding token is not configured")

    def _request(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        params = {**params, "access_token": self.token}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(url, params=params)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("geocoding_failed", url=url, error=str(e))
            raise GeocodingError(f"Geocoding provider error: {e}") from e

    def geocode(self, address: str, limit: int = 5, country: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Suggestions for an address, best match first.

        Returns:
            List of {place_name, latitude, longitude, relevance}
        """
        params: Dict[str, Any] = {"limit": limit, "autocomplete": "true"}
        if country:
            params["country"] = country
        data = self._request(f"geocoding/v5/mapbox.places/{quote(address)}.json", params)
        suggestions = []
        for feature in (data or {}).get("features", []):
            center = feature.get("center") or []
            if len(center) != 2:
                continue
            suggestions.append({
                "place_name": feature.get("place_name"),
                "longitude": float(center[0]),
                "latitude": float(center[1]),
                "relevance": feature.get("relevance"),
            })
        return suggestions


def join_address(*parts: Optional[str]) -> str:
    return ", ".join(p.strip() for p in parts if p and p.strip())


def geocode_first(address: str) -> Optional[Dict[str, Any]]:
    """Best-effort lookup: returns the first suggestion, or None on any failure."""
    if not address or not settings.mapbox_geocoding_token:
        return None
    try:
        results = MapboxGeocoder().geocode(address, limit=1)
    except (GeocodingError, GeocodingNotConfigured):
        return None
    return results[0] if results else None
