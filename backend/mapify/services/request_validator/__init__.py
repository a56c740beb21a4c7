"""Search request validation: POI type allowlist and coordinate/radius bounds."""

from .service import (
    DEFAULT_POI_TYPE,
    DEFAULT_RADIUS_METERS,
    MAX_RADIUS_METERS,
    MIN_RADIUS_METERS,
    POI_TYPE_ALIASES,
    PoiType,
    SearchRequest,
    parse_poi_type,
    validate_search_request,
)

__all__ = [
    "DEFAULT_POI_TYPE",
    "DEFAULT_RADIUS_METERS",
    "MAX_RADIUS_METERS",
    "MIN_RADIUS_METERS",
    "POI_TYPE_ALIASES",
    "PoiType",
    "SearchRequest",
    "parse_poi_type",
    "validate_search_request",
]
