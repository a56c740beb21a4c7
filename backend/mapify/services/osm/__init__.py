"""OpenStreetMap Overpass client for nearby POI search."""

from .service import (
    NodeElement,
    OverpassElement,
    OverpassPOIClient,
    RelationElement,
    WayElement,
    build_overpass_query,
    element_to_poi,
    parse_elements,
)

__all__ = [
    "NodeElement",
    "OverpassElement",
    "OverpassPOIClient",
    "RelationElement",
    "WayElement",
    "build_overpass_query",
    "element_to_poi",
    "parse_elements",
]
