"""
Dependency wiring for the FastAPI app.

Collaborators live on ``app.state`` so every app instance (and every test)
owns its own cache and clients. ``build_*`` helpers create the production
collaborators from settings; ``create_app`` and the lifespan handler call them
for anything not injected.
"""

import logging
from typing import Annotated

from fastapi import Depends, Header, Request

from mapify.config import Settings
from mapify.models import AuthError
from mapify.services.auth import (
    ApiKeyAuthenticator,
    FirebaseIdentityVerifier,
    IdentityVerifier,
    get_firebase_app,
)
from mapify.services.cache import InMemoryKeyCache, KeyCache, RedisKeyCache
from mapify.services.key_store import FirestoreKeyStore, InMemoryKeyStore, KeyStore
from mapify.services.osm import OverpassPOIClient

logger = logging.getLogger(__name__)


def build_key_store(settings: Settings) -> KeyStore:
    if settings.key_store_backend == "memory":
        logger.warning("[KEYS] Using in-memory key store; keys are lost on restart")
        return InMemoryKeyStore()
    if settings.key_store_backend != "firestore":
        raise ValueError(f"Unsupported key store backend: {settings.key_store_backend}")

    from firebase_admin import firestore_async

    app = get_firebase_app(settings.firebase_project_id)
    return FirestoreKeyStore(firestore_async.client(app))


def build_key_cache(settings: Settings) -> KeyCache:
    if settings.key_cache_backend == "redis":
        return RedisKeyCache(
            redis_url=settings.redis_url,
            max_entries=settings.key_cache_max_entries,
            ttl_seconds=settings.key_cache_ttl_seconds,
        )
    if settings.key_cache_backend != "memory":
        raise ValueError(f"Unsupported key cache backend: {settings.key_cache_backend}")
    return InMemoryKeyCache(
        max_entries=settings.key_cache_max_entries,
        ttl_seconds=settings.key_cache_ttl_seconds,
    )


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    return FirebaseIdentityVerifier(get_firebase_app(settings.firebase_project_id))


def build_poi_client(settings: Settings) -> OverpassPOIClient:
    return OverpassPOIClient(
        url=settings.overpass_url,
        timeout=settings.overpass_timeout_seconds,
        query_timeout=settings.overpass_query_timeout_seconds,
        max_results=settings.max_results,
        max_retries=settings.overpass_max_retries,
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_key_store(request: Request) -> KeyStore:
    return request.app.state.key_store


def get_key_cache(request: Request) -> KeyCache:
    return request.app.state.key_cache


def get_identity_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier


def get_poi_client(request: Request) -> OverpassPOIClient:
    return request.app.state.poi_client


def get_key_authenticator(
    cache: Annotated[KeyCache, Depends(get_key_cache)],
    store: Annotated[KeyStore, Depends(get_key_store)],
) -> ApiKeyAuthenticator:
    return ApiKeyAuthenticator(cache=cache, store=store)


async def get_current_owner(
    identity: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Verify the ``Authorization: Bearer <idToken>`` header; returns the uid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError()
    id_token = authorization[len("Bearer "):].strip()
    if not id_token:
        raise AuthError()
    return await identity.verify(id_token)
