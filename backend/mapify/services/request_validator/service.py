"""Search request validation.

The validator is the only way to build a ``SearchRequest``. Every value that
later ends up in the Overpass query text is constrained here, either to a
closed set (``PoiType``) or to a bounded numeric range, so no free text can
reach the query builder.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mapify.models import ErrorCode, InputValidationError

MIN_RADIUS_METERS = 100
MAX_RADIUS_METERS = 10000
DEFAULT_POI_TYPE = "hospital"
DEFAULT_RADIUS_METERS = 3000


class PoiType(str, Enum):
    """Allowlisted POI categories."""

    HOSPITAL = "hospital"
    PHARMACY = "pharmacy"
    CLINIC = "clinic"
    RESTAURANT = "restaurant"
    FUEL = "fuel"
    BANK = "bank"
    SCHOOL = "school"
    POLICE = "police"
    FIRE_STATION = "fire_station"
    ATM = "atm"
    HOTEL = "hotel"
    CAFE = "cafe"
    FAST_FOOD = "fast_food"
    PARKING = "parking"
    BUS_STATION = "bus_station"
    LIBRARY = "library"

    @property
    def osm_key(self) -> str:
        """OSM tag key this category is stored under."""
        if self is PoiType.HOTEL:
            return "tourism"
        return "amenity"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


# Common synonyms accepted from clients
POI_TYPE_ALIASES = {
    "gas_station": PoiType.FUEL,
    "drugstore": PoiType.PHARMACY,
}


@dataclass(frozen=True)
class SearchRequest:
    """A validated search. Build with ``validate_search_request`` only."""

    lat: float
    lon: float
    poi_type: PoiType
    radius_meters: int


def _parse_float(raw: Any) -> float:
    if isinstance(raw, bool) or raw is None:
        raise ValueError("not a number")
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        value = float(str(raw).strip())
    if not math.isfinite(value):
        raise ValueError("not a finite number")
    return value


def _parse_int(raw: Any) -> int:
    if isinstance(raw, bool) or raw is None:
        raise ValueError("not an integer")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError("not an integer")
        return int(raw)
    return int(str(raw).strip())


def parse_poi_type(raw: Any) -> PoiType:
    """Map a raw type string onto the allowlist.

    Raises:
        InputValidationError: If the value is not an allowlisted category.
    """
    if not isinstance(raw, str):
        raise InputValidationError("Invalid POI type", ErrorCode.INVALID_TYPE)
    token = raw.strip().lower()
    if token in POI_TYPE_ALIASES:
        return POI_TYPE_ALIASES[token]
    try:
        return PoiType(token)
    except ValueError:
        raise InputValidationError("Invalid POI type", ErrorCode.INVALID_TYPE) from None


def validate_search_request(
    raw_lat: Any,
    raw_lon: Any,
    raw_type: Any = DEFAULT_POI_TYPE,
    raw_radius: Any = DEFAULT_RADIUS_METERS,
) -> SearchRequest:
    """Validate raw search parameters.

    Checks run in order: coordinates parse, coordinate ranges, POI type,
    radius. The first failure is raised.

    Raises:
        InputValidationError: With code INVALID_COORDINATES, INVALID_RANGE,
            INVALID_TYPE or INVALID_RADIUS.
    """
    try:
        lat = _parse_float(raw_lat)
        lon = _parse_float(raw_lon)
    except ValueError:
        raise InputValidationError(
            "Latitude and longitude must be numbers", ErrorCode.INVALID_COORDINATES
        ) from None

    if not -90 <= lat <= 90 or not -180 <= lon <= 180:
        raise InputValidationError(
            "Latitude must be within [-90, 90] and longitude within [-180, 180]",
            ErrorCode.INVALID_RANGE,
        )

    poi_type = parse_poi_type(raw_type)

    try:
        radius = _parse_int(raw_radius)
    except ValueError:
        radius = None
    if radius is None or not MIN_RADIUS_METERS <= radius <= MAX_RADIUS_METERS:
        raise InputValidationError(
            f"Radius must be an integer between {MIN_RADIUS_METERS} and {MAX_RADIUS_METERS} meters",
            ErrorCode.INVALID_RADIUS,
        )

    return SearchRequest(lat=lat, lon=lon, poi_type=poi_type, radius_meters=radius)
