"""Collection vault - many collections under one base directory.

Each collection is an independent ``Vault`` stored in ``<base>/<name>/`` with
its own ``.vault.json`` and ``.index.json``. Collections are opened lazily on
first use.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from filevault.backends.base import AsyncFileSystem, join_path
from filevault.config import VaultSettings
from filevault.types import CollectionStats, RecordSummary
from filevault.vault import Vault

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "default"

_COLLECTION_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def validate_collection_name(name: str) -> str:
    """Collection names become directory names; reject anything path-like."""
    if not _COLLECTION_NAME.match(name or ""):
        raise ValueError(
            f"Invalid collection name {name!r}: use letters, digits, '_', '-' or '.'"
        )
    return name


class CollectionVault:
    """Routes records to per-collection vaults under ``base_path``."""

    def __init__(
        self,
        base_path: str,
        fs: AsyncFileSystem,
        settings: VaultSettings | None = None,
    ):
        """
        Initialize collection vault.

        Args:
            base_path: Directory holding one sub-directory per collection
            fs: Storage backend shared by every collection
            settings: Defaults and per-collection overrides
        """
        self.base_path = base_path
        self.fs = fs
        self.settings = settings or VaultSettings()
        self._vaults: dict[str, Vault[Any]] = {}

    async def collection(self, name: str = DEFAULT_COLLECTION) -> Vault[Any]:
        """Open (creating if needed) the vault for a collection."""
        validate_collection_name(name)
        vault = self._vaults.get(name)
        if vault is None:
            config = self.settings.config_for(join_path(self.base_path, name), name)
            vault = await Vault.create(config, self.fs)
            self._vaults[name] = vault
        return vault

    async def collections(self) -> list[str]:
        """Names of every collection, on disk or opened in this process."""
        names = set(self._vaults)
        for entry in await self.fs.list_dir(self.base_path):
            if entry.startswith("."):
                continue
            if await Vault.exists(join_path(self.base_path, entry), self.fs):
                names.add(entry)
        return sorted(names)

    async def _existing(self, name: str) -> Vault[Any] | None:
        """Open vault for a collection that already exists, without creating it."""
        validate_collection_name(name)
        vault = self._vaults.get(name)
        if vault is not None:
            return vault
        if not await Vault.exists(join_path(self.base_path, name), self.fs):
            logger.debug("Collection %s does not exist under %s", name, self.base_path)
            return None
        return await self.collection(name)

    async def save(
        self,
        record_id: str,
        data: Any,
        metadata: dict[str, Any] | None = None,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        vault = await self.collection(collection)
        await vault.save(record_id, data, metadata)

    async def get(self, record_id: str, collection: str = DEFAULT_COLLECTION) -> Any:
        vault = await self._existing(collection)
        if vault is None:
            return None
        return await vault.get(record_id)

    async def find(self, keyword: str, collection: str | None = None) -> list[Any]:
        """Search one collection, or every collection when none is given."""
        names = [collection] if collection else await self.collections()
        results: list[Any] = []
        for name in names:
            vault = await self._existing(name)
            if vault is not None:
                results.extend(await vault.find(keyword))
        return results

    async def query(
        self, conditions: dict[str, Any], collection: str = DEFAULT_COLLECTION
    ) -> list[Any]:
        vault = await self._existing(collection)
        if vault is None:
            return []
        return await vault.query(conditions)

    async def list(self, collection: str = DEFAULT_COLLECTION) -> list[RecordSummary]:
        vault = await self._existing(collection)
        if vault is None:
            return []
        return await vault.list()

    async def delete(self, record_id: str, collection: str = DEFAULT_COLLECTION) -> bool:
        vault = await self._existing(collection)
        if vault is None:
            return False
        return await vault.delete(record_id)

    async def stats(self) -> CollectionStats:
        """Record counts per collection, computed on demand."""
        counts: dict[str, int] = {}
        for name in await self.collections():
            vault = await self.collection(name)
            counts[name] = (await vault.stats()).total_records
        return CollectionStats(total_records=sum(counts.values()), collections=counts)

    def __repr__(self) -> str:
        return f"CollectionVault({self.base_path}, open={sorted(self._vaults)})"
