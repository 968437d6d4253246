"""Integration tests for vaults on the local filesystem.

These tests verify the complete on-disk experience:
- Collection directories hold .vault.json, .index.json and record files
- Catalog and metadata files keep their documented layout
- Data survives a fresh process opening the same directory
- Orphans and reindex work against real files
"""

import json
import re
from pathlib import Path

import pytest

from filevault.backends import LocalFileSystem
from filevault.collection_vault import CollectionVault
from filevault.config import VaultConfig
from filevault.vault import Vault

RECORD_FILE = re.compile(r"^\d{13}-[0-9a-z]{6}(-[A-Za-z0-9_.-]+)?\.vault\.(json|dat)$")


async def _seed(vault, employees):
    for record_id, data, metadata in employees:
        await vault.save(record_id, data, metadata)


class TestVaultOnDisk:
    """Layout of a collection directory."""

    @pytest.mark.asyncio
    async def test_directory_layout(self, tmp_path: Path, employees):
        """Metadata, catalog and one file per record."""
        vault = await Vault.create(
            VaultConfig(path=str(tmp_path / "users"), name="users"), LocalFileSystem()
        )
        await _seed(vault, employees)

        names = sorted(p.name for p in (tmp_path / "users").iterdir())
        record_files = [n for n in names if not n.startswith(".")]

        assert ".vault.json" in names
        assert ".index.json" in names
        assert len(record_files) == 3
        assert all(RECORD_FILE.match(n) for n in record_files)
        assert all(n.endswith("-employee.vault.json") for n in record_files)

    @pytest.mark.asyncio
    async def test_index_layout(self, tmp_path: Path, employees):
        """.index.json lists records with existing filenames and search terms."""
        vault = await Vault.create(VaultConfig(path=str(tmp_path)), LocalFileSystem())
        await _seed(vault, employees)

        index = json.loads((tmp_path / ".index.json").read_text())

        assert set(index) == {"records", "searchIndexes", "version", "updated"}
        assert [r["id"] for r in index["records"]] == ["alice", "bob", "carol"]
        assert index["records"][0]["metadata"]["department"] == "Engineering"
        assert "engineering" in index["searchIndexes"]
        for record in index["records"]:
            assert (tmp_path / record["filename"]).exists()

    @pytest.mark.asyncio
    async def test_metadata_layout(self, tmp_path: Path):
        """.vault.json records name, encoding, version and lastAccessed."""
        await Vault.create(
            VaultConfig(path=str(tmp_path), name="users", encoding="hex"), LocalFileSystem()
        )

        metadata = json.loads((tmp_path / ".vault.json").read_text())

        assert metadata["name"] == "users"
        assert metadata["encoding"] == "hex"
        assert metadata["version"] == "1.0.0"
        assert "lastAccessed" in metadata

    @pytest.mark.asyncio
    async def test_record_file_is_envelope(self, tmp_path: Path):
        """Record files hold the JSON envelope."""
        vault = await Vault.create(VaultConfig(path=str(tmp_path)), LocalFileSystem())
        await vault.save("alice", {"name": "Alice"}, {"type": "employee"})

        filename = await vault.catalog.get("alice")
        envelope = json.loads((tmp_path / filename).read_text())

        assert envelope["id"] == "alice"
        assert envelope["data"] == {"name": "Alice"}
        assert envelope["metadata"] == {"type": "employee"}
        assert len(envelope["checksum"]) == 16


class TestVaultPersistence:
    """Data survives reopening the directory."""

    @pytest.mark.asyncio
    async def test_reopen(self, tmp_path: Path, employees):
        """A second process opening the directory sees every record."""
        first = await Vault.create(VaultConfig(path=str(tmp_path)), LocalFileSystem())
        await _seed(first, employees)

        second = await Vault.open(str(tmp_path), LocalFileSystem())

        assert await second.get("bob") == employees[1][1]
        assert [r["name"] for r in await second.find("engineering")] == ["Alice", "Bob"]
        assert (await second.stats()).total_records == 3

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, tmp_path: Path):
        """delete removes the record file from disk."""
        vault = await Vault.create(VaultConfig(path=str(tmp_path)), LocalFileSystem())
        await vault.save("alice", {"name": "Alice"})
        filename = await vault.catalog.get("alice")

        assert await vault.delete("alice") is True
        assert not (tmp_path / filename).exists()

    @pytest.mark.asyncio
    async def test_reindex_after_losing_catalog(self, tmp_path: Path, employees):
        """Deleting .index.json loses the mapping until reindex."""
        first = await Vault.create(VaultConfig(path=str(tmp_path)), LocalFileSystem())
        await _seed(first, employees)
        (tmp_path / ".index.json").unlink()

        second = await Vault.create(VaultConfig(path=str(tmp_path)), LocalFileSystem())
        assert await second.get("alice") is None
        assert len(await second.orphans()) == 3

        assert await second.reindex() == 3
        assert await second.get("alice") == employees[0][1]
        assert await second.orphans() == []


class TestCollectionVaultOnDisk:
    @pytest.mark.asyncio
    async def test_collections_are_directories(self, tmp_path: Path):
        """Each collection is its own directory and is discovered again."""
        store = CollectionVault(str(tmp_path), LocalFileSystem())
        await store.save("a", {"v": 1}, collection="users")
        await store.save("b", {"v": 2}, collection="logs")

        assert (tmp_path / "users" / ".vault.json").exists()
        assert (tmp_path / "logs" / ".index.json").exists()
        assert await CollectionVault(str(tmp_path), LocalFileSystem()).collections() == [
            "logs",
            "users",
        ]
