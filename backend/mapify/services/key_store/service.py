"""API key store services.

Translates key lifecycle operations into document-store operations. Keys live
in owner-scoped collections, ``apiKeys/{uid}/keys/{keyId}``, with fields
``key``, ``active``, ``name``, ``createdAt``, ``lastUsed`` and ``usageCount``.

Two implementations:
- FirestoreKeyStore: production backend (Cloud Firestore, async client)
- InMemoryKeyStore:  process-local backend for local development and tests
"""

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from mapify.models import (
    KEYS_ROOT_COLLECTION,
    KEYS_SUBCOLLECTION,
    ApiKey,
    KeyRef,
    NotFoundError,
    StoreError,
    mask_key,
)

logger = logging.getLogger(__name__)

KEY_VALUE_BYTES = 32


def generate_key_value() -> str:
    """Return a new unguessable key value (256 bits of entropy)."""
    return secrets.token_urlsafe(KEY_VALUE_BYTES)


def _check_id(value: str) -> None:
    # Ids are interpolated into document paths
    if not value or "/" in value:
        raise NotFoundError("API key not found")


class KeyStore(ABC):
    """Abstract base class for API key stores."""

    @abstractmethod
    async def find_active_by_value(self, value: str) -> ApiKey | None:
        """Look up an active key by its secret value, across all owners."""
        pass

    @abstractmethod
    async def create(self, owner_id: str, name: str) -> ApiKey:
        """Create a new active key for ``owner_id`` with a generated value."""
        pass

    @abstractmethod
    async def get(self, owner_id: str, key_id: str) -> ApiKey:
        """Fetch one owned key.

        Raises:
            NotFoundError: If ``(owner_id, key_id)`` does not exist.
        """
        pass

    @abstractmethod
    async def deactivate(self, owner_id: str, key_id: str) -> ApiKey:
        """Set ``active=False`` on an owned key and return it.

        Deactivating an already revoked key is a no-op.

        Raises:
            NotFoundError: If ``(owner_id, key_id)`` does not exist.
        """
        pass

    @abstractmethod
    async def increment_usage(self, ref: KeyRef) -> None:
        """Atomically add one to ``usageCount``."""
        pass

    @abstractmethod
    async def mark_used(self, ref: KeyRef) -> None:
        """Set ``lastUsed`` to the current time."""
        pass

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> list[ApiKey]:
        pass

    async def close(self) -> None:
        pass


class FirestoreKeyStore(KeyStore):
    """Cloud Firestore implementation of the key store.

    ``find_active_by_value`` is a single collection-group query over every
    owner's ``keys`` collection (requires the ``key``+``active`` composite
    index). Counters use ``firestore.Increment`` so concurrent searches never
    lose updates.
    """

    def __init__(self, client: firestore.AsyncClient) -> None:
        self._db = client

    def _keys(self, owner_id: str) -> firestore.AsyncCollectionReference:
        return (
            self._db.collection(KEYS_ROOT_COLLECTION)
            .document(owner_id)
            .collection(KEYS_SUBCOLLECTION)
        )

    def _document(self, ref: KeyRef) -> firestore.AsyncDocumentReference:
        return self._keys(ref.owner_id).document(ref.key_id)

    @staticmethod
    def _from_snapshot(snapshot: Any) -> ApiKey:
        data = snapshot.to_dict() or {}
        # apiKeys/{uid}/keys/{keyId}: the owner is the parent of the collection
        owner_id = snapshot.reference.parent.parent.id
        return ApiKey(
            id=snapshot.id,
            owner_id=owner_id,
            value=data.get("key", ""),
            active=bool(data.get("active", False)),
            name=data.get("name") or "",
            created_at=data.get("createdAt"),
            last_used=data.get("lastUsed"),
            usage_count=int(data.get("usageCount") or 0),
        )

    async def find_active_by_value(self, value: str) -> ApiKey | None:
        query = (
            self._db.collection_group(KEYS_SUBCOLLECTION)
            .where(filter=FieldFilter("key", "==", value))
            .where(filter=FieldFilter("active", "==", True))
            .limit(1)
        )
        try:
            snapshots = await query.get()
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"[KEYS] Lookup failed for key {mask_key(value)}: {e}")
            raise StoreError() from e
        if not snapshots:
            return None
        return self._from_snapshot(snapshots[0])

    async def create(self, owner_id: str, name: str) -> ApiKey:
        value = generate_key_value()
        created_at = datetime.now(timezone.utc)
        data = {
            "key": value,
            "active": True,
            "createdAt": created_at,
            "usageCount": 0,
            "name": name,
        }
        try:
            _, doc_ref = await self._keys(owner_id).add(data)
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"[KEYS] Create failed for owner {owner_id}: {e}")
            raise StoreError() from e
        logger.info(f"[KEYS] Created key {doc_ref.id} for owner {owner_id}")
        return ApiKey(
            id=doc_ref.id,
            owner_id=owner_id,
            value=value,
            active=True,
            name=name,
            created_at=created_at,
            usage_count=0,
        )

    async def get(self, owner_id: str, key_id: str) -> ApiKey:
        _check_id(key_id)
        try:
            snapshot = await self._document(KeyRef(owner_id, key_id)).get()
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"[KEYS] Read failed for {owner_id}/{key_id}: {e}")
            raise StoreError() from e
        if not snapshot.exists:
            raise NotFoundError("API key not found")
        return self._from_snapshot(snapshot)

    async def deactivate(self, owner_id: str, key_id: str) -> ApiKey:
        _check_id(key_id)
        doc = self._document(KeyRef(owner_id, key_id))
        try:
            # update() fails with NotFound when the document is missing
            await doc.update({"active": False})
        except gcp_exceptions.NotFound as e:
            raise NotFoundError("API key not found") from e
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"[KEYS] Deactivate failed for {owner_id}/{key_id}: {e}")
            raise StoreError() from e
        logger.info(f"[KEYS] Revoked key {key_id} for owner {owner_id}")
        return await self.get(owner_id, key_id)

    async def increment_usage(self, ref: KeyRef) -> None:
        try:
            await self._document(ref).update({"usageCount": firestore.Increment(1)})
        except gcp_exceptions.NotFound as e:
            raise NotFoundError("API key not found") from e
        except gcp_exceptions.GoogleAPIError as e:
            raise StoreError() from e

    async def mark_used(self, ref: KeyRef) -> None:
        try:
            await self._document(ref).update({"lastUsed": firestore.SERVER_TIMESTAMP})
        except gcp_exceptions.NotFound as e:
            raise NotFoundError("API key not found") from e
        except gcp_exceptions.GoogleAPIError as e:
            raise StoreError() from e

    async def list_by_owner(self, owner_id: str) -> list[ApiKey]:
        try:
            snapshots = await self._keys(owner_id).get()
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"[KEYS] Listing failed for owner {owner_id}: {e}")
            raise StoreError() from e
        return [self._from_snapshot(s) for s in snapshots]


class InMemoryKeyStore(KeyStore):
    """Process-local key store.

    Mirrors the Firestore semantics (owner-scoped ids, terminal revocation,
    atomic counters) behind a single ``asyncio.Lock``.
    """

    def __init__(self) -> None:
        self._keys: dict[KeyRef, ApiKey] = {}
        self._by_value: dict[str, KeyRef] = {}
        self._lock = asyncio.Lock()

    async def find_active_by_value(self, value: str) -> ApiKey | None:
        async with self._lock:
            ref = self._by_value.get(value)
            if ref is None:
                return None
            key = self._keys[ref]
            return key.model_copy() if key.active else None

    async def create(self, owner_id: str, name: str) -> ApiKey:
        async with self._lock:
            value = generate_key_value()
            while value in self._by_value:
                value = generate_key_value()
            key = ApiKey(
                id=secrets.token_hex(10),
                owner_id=owner_id,
                value=value,
                active=True,
                name=name,
                created_at=datetime.now(timezone.utc),
                usage_count=0,
            )
            self._keys[key.ref] = key
            self._by_value[value] = key.ref
            return key.model_copy()

    def _require(self, ref: KeyRef) -> ApiKey:
        key = self._keys.get(ref)
        if key is None:
            raise NotFoundError("API key not found")
        return key

    async def get(self, owner_id: str, key_id: str) -> ApiKey:
        _check_id(key_id)
        async with self._lock:
            return self._require(KeyRef(owner_id, key_id)).model_copy()

    async def deactivate(self, owner_id: str, key_id: str) -> ApiKey:
        _check_id(key_id)
        async with self._lock:
            key = self._require(KeyRef(owner_id, key_id))
            key.active = False
            return key.model_copy()

    async def increment_usage(self, ref: KeyRef) -> None:
        async with self._lock:
            self._require(ref).usage_count += 1

    async def mark_used(self, ref: KeyRef) -> None:
        async with self._lock:
            self._require(ref).last_used = datetime.now(timezone.utc)

    async def list_by_owner(self, owner_id: str) -> list[ApiKey]:
        async with self._lock:
            return [
                key.model_copy()
                for ref, key in self._keys.items()
                if ref.owner_id == owner_id
            ]
