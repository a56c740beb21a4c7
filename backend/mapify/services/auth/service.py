"""Caller authentication.

- IdentityVerifier: turns an identity bearer token into the owner's uid
  (Firebase Authentication in production)
- ApiKeyAuthenticator: resolves an ``x-api-key`` value to the key's store
  reference, reading through the key cache
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import firebase_admin
from firebase_admin import auth as firebase_auth

from mapify.models import AuthError, KeyRef, mask_key
from mapify.services.cache import KeyCache
from mapify.services.key_store import KeyStore

logger = logging.getLogger(__name__)


def get_firebase_app(project_id: Optional[str] = None) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        options = {"projectId": project_id} if project_id else None
        return firebase_admin.initialize_app(options=options)


class IdentityVerifier(ABC):
    """Abstract base class for identity token verification."""

    @abstractmethod
    async def verify(self, id_token: str) -> str:
        """Verify ``id_token`` and return the caller's uid.

        Raises:
            AuthError: If the token is invalid, expired, revoked or belongs to
                a disabled account.
        """
        pass


class FirebaseIdentityVerifier(IdentityVerifier):
    """Verifies Firebase ID tokens with the Admin SDK."""

    def __init__(self, app: Optional[firebase_admin.App] = None) -> None:
        self._app = app

    async def verify(self, id_token: str) -> str:
        try:
            # verify_id_token may fetch signing certificates; keep it off the loop
            decoded = await asyncio.to_thread(
                firebase_auth.verify_id_token, id_token, app=self._app
            )
        except (
            firebase_auth.InvalidIdTokenError,
            firebase_auth.UserDisabledError,
            ValueError,
        ) as e:
            logger.info(f"[AUTH] Rejected identity token: {type(e).__name__}")
            raise AuthError() from e
        uid = decoded.get("uid")
        if not uid:
            raise AuthError()
        return uid


class ApiKeyAuthenticator:
    """Resolves API key values for the search path.

    Lookup order is cache, then store; a store hit for an active key fills
    the cache. Cached references are trusted until they expire, so a revoked
    key can keep resolving for at most the cache TTL unless its entry is
    invalidated.
    """

    def __init__(self, cache: KeyCache, store: KeyStore) -> None:
        self._cache = cache
        self._store = store

    async def resolve(self, key_value: str | None) -> KeyRef:
        """Return the store reference for an active key.

        Raises:
            AuthError: If the key is missing, unknown or revoked.
            StoreError: If the store lookup fails.
        """
        if not key_value:
            raise AuthError("API key is required")

        cached = await self._cache.get(key_value)
        if cached is not None:
            return cached.store_ref

        key = await self._store.find_active_by_value(key_value)
        if key is None:
            logger.info(f"[AUTH] Unknown or inactive API key {mask_key(key_value)}")
            raise AuthError("Invalid or inactive API key")

        await self._cache.put(key_value, key.ref)
        return key.ref

    async def forget(self, key_value: str) -> None:
        """Drop a key from the cache, e.g. after revocation."""
        if await self._cache.invalidate(key_value):
            logger.info(f"[CACHE] Invalidated API key {mask_key(key_value)}")
