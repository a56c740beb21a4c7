"""Mapify Services.

Service layer components:
- Cache: in-memory FIFO/TTL API key cache with optional Redis backend
- Key Store: Firestore-backed API key persistence (in-memory for development)
- Request Validator: allowlist and bounds checks for search parameters
- OSM: OpenStreetMap Overpass API for nearby POI queries
- Auth: Firebase identity tokens and cached API key resolution
"""

from .cache import CacheEntry, InMemoryKeyCache, KeyCache, RedisKeyCache
from .key_store import FirestoreKeyStore, InMemoryKeyStore, KeyStore
from .request_validator import PoiType, SearchRequest, validate_search_request
from .osm import OverpassPOIClient, build_overpass_query
from .auth import (
    ApiKeyAuthenticator,
    FirebaseIdentityVerifier,
    IdentityVerifier,
)

__all__ = [
    # Cache
    "CacheEntry",
    "InMemoryKeyCache",
    "KeyCache",
    "RedisKeyCache",
    # Key store
    "FirestoreKeyStore",
    "InMemoryKeyStore",
    "KeyStore",
    # Request validator
    "PoiType",
    "SearchRequest",
    "validate_search_request",
    # OSM
    "OverpassPOIClient",
    "build_overpass_query",
    # Auth
    "ApiKeyAuthenticator",
    "FirebaseIdentityVerifier",
    "IdentityVerifier",
]
