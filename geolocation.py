"""Pin coordinates from the map query and reverse geocoding via Nominatim."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import httpx

from config import config
from navigation import PIN_QUERY_KEYS
from slug import RouterQuery, normalize_query_param
from utils.logging import configure_logger

LOG_FILE = Path(config.LOG_DIR) / "geolocation.log"
logger = configure_logger(__name__, LOG_FILE)

CITY_KEYS = ("city", "town", "village", "municipality")


class GeocodingError(Exception):
    """Raised when the reverse geocoding request fails."""


def _parse_coordinate(raw: Any) -> Optional[float]:
    values = normalize_query_param(raw)
    if not values:
        return None
    try:
        return float(values[0])
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Point:
    lat: Optional[float] = None
    lng: Optional[float] = None

    @classmethod
    def from_query(cls, query: RouterQuery) -> "Point":
        """Read the pin position from ``pinLat`` and ``pinLng``."""
        lat_key, lng_key = PIN_QUERY_KEYS
        return cls(
            lat=_parse_coordinate(query.get(lat_key)),
            lng=_parse_coordinate(query.get(lng_key)),
        )

    def is_empty(self) -> bool:
        return self.lat is None or self.lng is None

    def to_list(self) -> List[Optional[float]]:
        return [self.lat, self.lng]

    def to_json(self) -> Dict[str, Optional[float]]:
        return {"lat": self.lat, "lng": self.lng}


def get_city_from_address(address: Mapping[str, Any]) -> Optional[str]:
    """Return the most specific settlement name Nominatim provides."""

    for key in CITY_KEYS:
        value = address.get(key)
        if value:
            return str(value)
    return None


def address_fields(point: Point, place: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate a Nominatim place into entry form fields."""

    address = place.get("address") or {}
    return {
        "lat": point.lat,
        "lng": point.lng,
        "country": address.get("country"),
        "city": get_city_from_address(address),
        "state": address.get("state"),
        "street": address.get("road"),
        "zip": address.get("postcode"),
    }


async def reverse_geocode(
    point: Point, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Dict[str, Any]:
    """Return the Nominatim place for ``point``."""
    if point.is_empty():
        raise GeocodingError("Cannot reverse geocode an empty point")
    url = f"{config.NOMINATIM_URL.rstrip('/')}/reverse"
    params = {"format": "jsonv2", "lat": point.lat, "lon": point.lng}
    logger.info("Reverse geocoding lat=%s lng=%s", point.lat, point.lng)
    try:
        async with httpx.AsyncClient(
            timeout=config.REQUEST_TIMEOUT, transport=transport
        ) as client:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Reverse geocoding failed: %s", exc)
        raise GeocodingError("Reverse geocoding request failed") from exc
    return data if isinstance(data, dict) else {}


async def lookup_address_fields(point: Point) -> Dict[str, Any]:
    """Return form fields for ``point``, or an empty dict when lookup fails."""
    if point.is_empty():
        return {}
    try:
        place = await reverse_geocode(point)
    except GeocodingError as exc:
        logger.warning("Serving form without address details: %s", exc)
        return {}
    return address_fields(point, place)
