"""Tests for filevault.collection_vault module."""

import pytest

from filevault.collection_vault import (
    DEFAULT_COLLECTION,
    CollectionVault,
    validate_collection_name,
)
from filevault.config import CollectionSettings, VaultSettings
from filevault.types import RecordFormat, TransportEncoding


@pytest.fixture
def store(memory_fs):
    """Collection vault rooted at /data on the in-memory backend."""
    return CollectionVault("/data", memory_fs)


class TestCollectionNames:
    @pytest.mark.parametrize("name", ["users", "audit-log", "v1.2", "A_b"])
    def test_valid_names(self, name):
        """Letters, digits, dashes, dots and underscores are allowed."""
        assert validate_collection_name(name) == name

    @pytest.mark.parametrize("name", ["", "../etc", "a/b", ".hidden", "with space"])
    def test_invalid_names(self, name):
        """Names that could escape the base directory are rejected."""
        with pytest.raises(ValueError, match="Invalid collection name"):
            validate_collection_name(name)


class TestCollectionVault:
    """Tests for routing records between collections."""

    @pytest.mark.asyncio
    async def test_default_collection(self, store, memory_fs):
        """Records without a collection land in the default one."""
        await store.save("alice", {"name": "Alice"})

        assert await store.get("alice") == {"name": "Alice"}
        assert await store.get("alice", DEFAULT_COLLECTION) == {"name": "Alice"}
        assert "/data/default/.vault.json" in memory_fs.files

    @pytest.mark.asyncio
    async def test_collections_are_isolated(self, store):
        """The same id can live in two collections independently."""
        await store.save("x", {"v": "users"}, collection="users")
        await store.save("x", {"v": "logs"}, collection="logs")

        assert await store.get("x", "users") == {"v": "users"}
        assert await store.get("x", "logs") == {"v": "logs"}
        assert await store.get("x") is None

    @pytest.mark.asyncio
    async def test_collection_is_cached(self, store):
        """Opening a collection twice returns the same vault."""
        first = await store.collection("users")

        assert await store.collection("users") is first

    @pytest.mark.asyncio
    async def test_collections_lists_disk_and_open(self, store, memory_fs):
        """collections() sees collections created by another instance."""
        await store.save("a", {}, collection="users")
        await store.collection("empty")

        other = CollectionVault("/data", memory_fs)

        assert await other.collections() == ["empty", "users"]

    @pytest.mark.asyncio
    async def test_collections_ignores_plain_directories(self, store, memory_fs):
        """Directories without .vault.json are not collections."""
        await memory_fs.ensure_dir("/data/not-a-vault")
        await store.save("a", {}, collection="users")

        assert await store.collections() == ["users"]

    @pytest.mark.asyncio
    async def test_find_across_collections(self, store):
        """find without a collection searches all of them."""
        await store.save("alice", {"name": "Alice"}, {"team": "Platform"}, "users")
        await store.save("evt-1", {"name": "deploy"}, {"team": "Platform"}, "events")
        await store.save("bob", {"name": "Bob"}, {"team": "Sales"}, "users")

        everywhere = await store.find("platform")
        users_only = await store.find("platform", "users")

        assert everywhere == [{"name": "deploy"}, {"name": "Alice"}]
        assert users_only == [{"name": "Alice"}]

    @pytest.mark.asyncio
    async def test_query_list_delete(self, store, employees):
        """query, list and delete are routed to the named collection."""
        for record_id, data, metadata in employees:
            await store.save(record_id, data, metadata, "staff")

        assert len(await store.query({"department": "Engineering"}, "staff")) == 2
        assert [s.id for s in await store.list("staff")] == ["alice", "bob", "carol"]
        assert await store.delete("bob", "staff") is True
        assert await store.delete("bob", "staff") is False
        assert [s.id for s in await store.list("staff")] == ["alice", "carol"]

    @pytest.mark.asyncio
    async def test_stats(self, store):
        """stats counts records per collection and in total."""
        await store.save("a", {}, collection="users")
        await store.save("b", {}, collection="users")
        await store.save("c", {}, collection="logs")

        stats = await store.stats()

        assert stats.total_records == 3
        assert stats.collections == {"logs": 1, "users": 2}

    @pytest.mark.asyncio
    async def test_reads_never_create_collections(self, store, memory_fs):
        """get/find/query/list/delete on an unknown collection write nothing."""
        await store.save("alice", {"name": "Alice"}, {"team": "Core"}, "users")
        before = dict(memory_fs.files)

        assert await store.get("alice", "typo") is None
        assert await store.find("core", "typo") == []
        assert await store.query({}, "typo") == []
        assert await store.list("typo") == []
        assert await store.delete("alice", "typo") is False

        assert memory_fs.files == before
        assert await store.collections() == ["users"]
        assert (await store.stats()).collections == {"users": 1}

    @pytest.mark.asyncio
    async def test_reads_open_existing_collection(self, store, memory_fs):
        """A collection created by another instance is readable without create."""
        await store.save("alice", {"name": "Alice"}, collection="users")

        other = CollectionVault("/data", memory_fs)

        assert await other.get("alice", "users") == {"name": "Alice"}
        assert await other.delete("alice", "users") is True

    @pytest.mark.asyncio
    async def test_invalid_collection_rejected(self, store):
        """Path-like collection names are refused on save."""
        with pytest.raises(ValueError):
            await store.save("a", {}, collection="../escape")

    @pytest.mark.asyncio
    async def test_settings_overrides(self, memory_fs):
        """Per-collection settings from filevault.yaml are applied."""
        settings = VaultSettings(
            encoding="base64",
            collections={"logs": CollectionSettings(format="binary", encoding="hex")},
        )
        store = CollectionVault("/data", memory_fs, settings)

        users = await store.collection("users")
        logs = await store.collection("logs")

        assert users.codec.encoding == TransportEncoding.BASE64
        assert users.codec.format == RecordFormat.JSON
        assert logs.codec.encoding == TransportEncoding.HEX
        assert logs.codec.format == RecordFormat.BINARY
        assert logs.name == "logs"
