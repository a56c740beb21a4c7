"""Unit tests for the key store backends."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from mapify.models import KeyRef, NotFoundError, StoreError
from mapify.services.key_store import FirestoreKeyStore, InMemoryKeyStore


class TestInMemoryKeyStore:
    """Tests for the in-memory backend."""

    def setup_method(self) -> None:
        self.store = InMemoryKeyStore()

    @pytest.mark.asyncio
    async def test_create_issues_active_key(self) -> None:
        key = await self.store.create("uid-1", "Production")
        assert key.owner_id == "uid-1"
        assert key.name == "Production"
        assert key.active is True
        assert key.usage_count == 0
        assert key.created_at is not None
        assert key.last_used is None
        # 32 random bytes, URL-safe base64
        assert len(key.value) >= 43

    @pytest.mark.asyncio
    async def test_values_are_unique(self) -> None:
        keys = [await self.store.create("uid-1", f"k{i}") for i in range(50)]
        assert len({k.value for k in keys}) == 50
        assert len({k.id for k in keys}) == 50

    @pytest.mark.asyncio
    async def test_find_active_by_value(self) -> None:
        key = await self.store.create("uid-1", "k")
        found = await self.store.find_active_by_value(key.value)
        assert found is not None
        assert found.ref == key.ref
        assert await self.store.find_active_by_value("nope") is None

    @pytest.mark.asyncio
    async def test_revoked_key_is_not_found_by_value(self) -> None:
        key = await self.store.create("uid-1", "k")
        revoked = await self.store.deactivate("uid-1", key.id)
        assert revoked.active is False
        assert await self.store.find_active_by_value(key.value) is None

    @pytest.mark.asyncio
    async def test_deactivate_twice_is_noop(self) -> None:
        key = await self.store.create("uid-1", "k")
        await self.store.deactivate("uid-1", key.id)
        again = await self.store.deactivate("uid-1", key.id)
        assert again.active is False

    @pytest.mark.asyncio
    async def test_deactivate_unknown_key(self) -> None:
        with pytest.raises(NotFoundError):
            await self.store.deactivate("uid-1", "missing")

    @pytest.mark.asyncio
    async def test_deactivate_is_scoped_to_owner(self) -> None:
        key = await self.store.create("uid-1", "k")
        with pytest.raises(NotFoundError):
            await self.store.deactivate("uid-2", key.id)
        assert (await self.store.get("uid-1", key.id)).active is True

    @pytest.mark.asyncio
    async def test_key_id_with_slash_is_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            await self.store.deactivate("uid-1", "../uid-2/keys/abc")

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self) -> None:
        key = await self.store.create("uid-1", "k")
        await asyncio.gather(*(self.store.increment_usage(key.ref) for _ in range(100)))
        assert (await self.store.get("uid-1", key.id)).usage_count == 100

    @pytest.mark.asyncio
    async def test_mark_used_sets_last_used(self) -> None:
        key = await self.store.create("uid-1", "k")
        await self.store.mark_used(key.ref)
        assert (await self.store.get("uid-1", key.id)).last_used is not None

    @pytest.mark.asyncio
    async def test_increment_unknown_ref(self) -> None:
        with pytest.raises(NotFoundError):
            await self.store.increment_usage(KeyRef("uid-1", "missing"))

    @pytest.mark.asyncio
    async def test_list_by_owner(self) -> None:
        await self.store.create("uid-1", "a")
        await self.store.create("uid-1", "b")
        await self.store.create("uid-2", "c")
        names = sorted(k.name for k in await self.store.list_by_owner("uid-1"))
        assert names == ["a", "b"]
        assert await self.store.list_by_owner("uid-3") == []

    @pytest.mark.asyncio
    async def test_returned_keys_are_copies(self) -> None:
        key = await self.store.create("uid-1", "k")
        key.active = False
        assert (await self.store.get("uid-1", key.id)).active is True


def _snapshot(key_id: str, owner_id: str, data: dict) -> MagicMock:
    snapshot = MagicMock()
    snapshot.id = key_id
    snapshot.exists = True
    snapshot.to_dict.return_value = data
    snapshot.reference.parent.parent.id = owner_id
    return snapshot


class TestFirestoreKeyStore:
    """Tests for the Firestore backend with a mocked async client."""

    def setup_method(self) -> None:
        self.db = MagicMock()
        self.keys = self.db.collection.return_value.document.return_value.collection.return_value
        self.doc = self.keys.document.return_value
        self.query = (
            self.db.collection_group.return_value.where.return_value.where.return_value.limit.return_value
        )
        self.store = FirestoreKeyStore(self.db)

    @pytest.mark.asyncio
    async def test_find_active_by_value_uses_collection_group(self) -> None:
        self.query.get = AsyncMock(
            return_value=[
                _snapshot("k1", "uid-1", {"key": "v", "active": True, "name": "n", "usageCount": 4})
            ]
        )
        key = await self.store.find_active_by_value("v")

        self.db.collection_group.assert_called_once_with("keys")
        assert key is not None
        assert key.ref == KeyRef("uid-1", "k1")
        assert key.usage_count == 4

    @pytest.mark.asyncio
    async def test_find_active_by_value_miss(self) -> None:
        self.query.get = AsyncMock(return_value=[])
        assert await self.store.find_active_by_value("v") is None

    @pytest.mark.asyncio
    async def test_store_outage_raises_store_error(self) -> None:
        self.query.get = AsyncMock(side_effect=gcp_exceptions.ServiceUnavailable("down"))
        with pytest.raises(StoreError):
            await self.store.find_active_by_value("v")

    @pytest.mark.asyncio
    async def test_create_persists_active_key(self) -> None:
        doc_ref = MagicMock()
        doc_ref.id = "new-id"
        self.keys.add = AsyncMock(return_value=(None, doc_ref))

        key = await self.store.create("uid-1", "CI")

        self.db.collection.assert_called_with("apiKeys")
        data = self.keys.add.call_args.args[0]
        assert data["key"] == key.value
        assert data["active"] is True
        assert data["usageCount"] == 0
        assert data["name"] == "CI"
        assert key.id == "new-id"

    @pytest.mark.asyncio
    async def test_deactivate_missing_document(self) -> None:
        self.doc.update = AsyncMock(side_effect=gcp_exceptions.NotFound("missing"))
        with pytest.raises(NotFoundError):
            await self.store.deactivate("uid-1", "k1")

    @pytest.mark.asyncio
    async def test_deactivate_returns_updated_key(self) -> None:
        self.doc.update = AsyncMock()
        self.doc.get = AsyncMock(
            return_value=_snapshot("k1", "uid-1", {"key": "v", "active": False, "name": "n"})
        )
        key = await self.store.deactivate("uid-1", "k1")

        self.doc.update.assert_awaited_once_with({"active": False})
        assert key.active is False
        assert key.value == "v"

    @pytest.mark.asyncio
    async def test_increment_uses_atomic_transform(self) -> None:
        self.doc.update = AsyncMock()
        await self.store.increment_usage(KeyRef("uid-1", "k1"))

        update = self.doc.update.call_args.args[0]
        assert isinstance(update["usageCount"], firestore.Increment)
        assert update["usageCount"].value == 1

    @pytest.mark.asyncio
    async def test_mark_used_uses_server_timestamp(self) -> None:
        self.doc.update = AsyncMock()
        await self.store.mark_used(KeyRef("uid-1", "k1"))
        self.doc.update.assert_awaited_once_with({"lastUsed": firestore.SERVER_TIMESTAMP})

    @pytest.mark.asyncio
    async def test_list_by_owner(self) -> None:
        self.keys.get = AsyncMock(
            return_value=[
                _snapshot("a", "uid-1", {"key": "va", "active": True, "usageCount": 2}),
                _snapshot("b", "uid-1", {"key": "vb", "active": False}),
            ]
        )
        keys = await self.store.list_by_owner("uid-1")
        assert [k.id for k in keys] == ["a", "b"]
        assert [k.usage_count for k in keys] == [2, 0]
