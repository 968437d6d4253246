"""Vault - typed record store for one collection.

A vault owns one collection directory::

    <path>/
      .vault.json          collection metadata
      .index.json          catalog (id -> filename, metadata, search terms)
      <generated>.vault.json   one file per record

Record files are named ``{epoch_millis}-{random6}{-type}.vault.json`` and are
never derived from the record id; the catalog is the only link between the
two. Saving an existing id under the default overwrite policy repoints the id
to a new file and leaves the previous file orphaned on disk.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from filevault.backends.base import AsyncFileSystem, join_path
from filevault.catalog import Catalog
from filevault.codec import RecordCodec
from filevault.config import VaultConfig
from filevault.errors import (
    BackendError,
    IdentifierCollisionError,
    RecordDecodeError,
    VaultNotFoundError,
    VaultNotInitializedError,
)
from filevault.types import (
    CollisionPolicy,
    IndexEntry,
    ReadErrorPolicy,
    RecordFormat,
    RecordSummary,
    StorageMode,
    VaultMetadata,
    VaultStats,
    utc_now,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_FILENAME = ".vault.json"

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 6
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")
_FILENAME_TIMESTAMP = re.compile(r"^(\d{10,})-")


def _timestamp_from_filename(filename: str) -> datetime | None:
    """Recover the save time encoded in a generated filename."""
    match = _FILENAME_TIMESTAMP.match(filename)
    if not match:
        return None
    return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)


async def read_vault_metadata(path: str, fs: AsyncFileSystem) -> VaultMetadata:
    """Read ``.vault.json`` from a collection directory.

    Raises:
        VaultNotFoundError: If the file is missing or invalid.
    """
    metadata_path = join_path(path, METADATA_FILENAME)
    if not await fs.exists(metadata_path):
        raise VaultNotFoundError(f"Vault not found at {path} - missing {METADATA_FILENAME}")
    try:
        content = await fs.read_file(metadata_path)
        return VaultMetadata.model_validate_json(content)
    except (BackendError, ValidationError) as e:
        raise VaultNotFoundError(f"Invalid vault metadata in {metadata_path}: {e}") from e


class Vault(Generic[T]):
    """Typed CRUD and search facade over one collection.

    Construction performs no I/O. ``initialize()`` creates or opens the
    collection; every other operation requires it to have completed.

    Example:
        vault = await Vault.create(VaultConfig(path="data/users"), LocalFileSystem())
        await vault.save("alice", {"name": "Alice"}, {"department": "Engineering"})
        alice = await vault.get("alice")
    """

    def __init__(
        self,
        config: VaultConfig,
        fs: AsyncFileSystem,
        record_type: type[T] | None = None,
    ):
        """
        Initialize vault.

        Args:
            config: Collection configuration
            fs: Storage backend
            record_type: Optional type every payload is validated against on
                read (pydantic model, dataclass, TypedDict, ...)
        """
        self.config = config
        self.fs = fs
        self.record_type = record_type
        self.catalog = Catalog(config.path, fs, StorageMode.FILE)
        self.codec = self._make_codec(config)
        self.metadata: VaultMetadata | None = None
        self._adapter: TypeAdapter | None = (
            TypeAdapter(record_type) if record_type is not None else None
        )
        self._initialized = False

    @staticmethod
    def _make_codec(config: VaultConfig) -> RecordCodec:
        return RecordCodec(
            format=config.format,
            encoding=config.encoding,
            decode_policy=config.decode_policy,
            encrypted=config.encryption,
        )

    @property
    def path(self) -> str:
        return self.config.path

    @property
    def name(self) -> str:
        return self.metadata.name if self.metadata else self.config.name

    @property
    def initialized(self) -> bool:
        return self._initialized

    # Lifecycle

    @classmethod
    async def create(
        cls,
        config: VaultConfig,
        fs: AsyncFileSystem,
        record_type: type[T] | None = None,
    ) -> "Vault[T]":
        """Create a new vault or open the existing one at ``config.path``."""
        vault = cls(config, fs, record_type)
        await vault.initialize()
        return vault

    @classmethod
    async def open(
        cls,
        path: str,
        fs: AsyncFileSystem,
        record_type: type[T] | None = None,
    ) -> "Vault[T]":
        """Open an existing vault using the settings stored in ``.vault.json``.

        Raises:
            VaultNotFoundError: If no valid vault exists at ``path``.
        """
        stored = await read_vault_metadata(path, fs)
        config = VaultConfig(
            path=path,
            name=stored.name,
            version=stored.version,
            encryption=stored.encryption,
            compression=stored.compression,
            encoding=stored.encoding,
            format=stored.format,
        )
        vault = cls(config, fs, record_type)
        await vault.initialize()
        return vault

    @staticmethod
    async def exists(path: str, fs: AsyncFileSystem) -> bool:
        """Check if a vault exists at ``path``."""
        return await fs.exists(join_path(path, METADATA_FILENAME))

    async def initialize(self) -> "Vault[T]":
        """Ensure the directory, load or create metadata, load the catalog.

        Safe to call more than once. When the collection already exists its
        stored format, encoding and flags take precedence over the config so
        existing record files stay readable.
        """
        if self._initialized:
            return self

        await self.fs.ensure_dir(self.path)
        now = utc_now()

        try:
            stored = await read_vault_metadata(self.path, self.fs)
        except VaultNotFoundError as e:
            if await Vault.exists(self.path, self.fs):
                logger.warning("Recreating vault metadata at %s: %s", self.path, e)
            stored = None

        if stored is not None:
            self._adopt_stored_settings(stored)
            self.metadata = stored.model_copy(update={"last_accessed": now})
            logger.debug("Opened vault %s at %s", stored.name, self.path)
        else:
            self.metadata = VaultMetadata(
                name=self.config.name,
                version=self.config.version,
                created=now,
                last_accessed=now,
                encryption=self.config.encryption,
                compression=self.config.compression,
                encoding=self.config.encoding,
                format=self.config.format,
            )
            logger.info("Created vault %s at %s", self.config.name, self.path)

        await self._write_metadata()

        await self.catalog.load()
        await self.catalog.save()

        if self.config.encryption or self.config.compression:
            logger.warning(
                "Vault %s has encryption=%s compression=%s recorded, "
                "but records are stored without either",
                self.name,
                self.config.encryption,
                self.config.compression,
            )

        self._initialized = True
        return self

    def _adopt_stored_settings(self, stored: VaultMetadata) -> None:
        updates: dict[str, Any] = {}
        for key in ("encryption", "compression", "encoding", "format"):
            if getattr(stored, key) != getattr(self.config, key):
                updates[key] = getattr(stored, key)
        if not updates:
            return
        logger.warning(
            "Vault at %s was created with %s; using stored settings",
            self.path,
            ", ".join(f"{k}={getattr(stored, k)}" for k in updates),
        )
        self.config = self.config.model_copy(update=updates)
        self.codec = self._make_codec(self.config)

    async def _write_metadata(self) -> None:
        await self.fs.write_file(
            join_path(self.path, METADATA_FILENAME),
            self.metadata.model_dump_json(by_alias=True, indent=2),
        )

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise VaultNotInitializedError(
                f"Vault at {self.path} is not initialized: "
                f"await vault.initialize() (or use Vault.create) before {operation}()"
            )

    # Filenames

    def generate_filename(self, metadata: dict[str, Any] | None = None) -> str:
        """``{epoch_millis}-{random6}{-type}{extension}``, unused in this collection."""
        record_type = (metadata or {}).get("type")
        suffix = ""
        if record_type:
            suffix = "-" + _UNSAFE_FILENAME_CHARS.sub("_", str(record_type))

        taken = self.catalog.filenames()
        while True:
            timestamp = int(time.time() * 1000)
            random_part = "".join(
                secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH)
            )
            filename = f"{timestamp}-{random_part}{suffix}{self.codec.extension}"
            if filename not in taken:
                return filename

    def _file_path(self, filename: str) -> str:
        return join_path(self.path, filename)

    # Record operations

    async def save(
        self, record_id: str, data: T, metadata: dict[str, Any] | None = None
    ) -> None:
        """Store ``data`` under ``record_id``.

        Raises:
            IdentifierCollisionError: Strict collision policy and id exists.
            BackendError: The record or catalog write failed. A record file
                written before a failed catalog write is not removed.
        """
        self._require_initialized("save")
        if not record_id:
            raise ValueError("Record id must be a non-empty string")

        metadata = dict(metadata or {})
        previous = await self.catalog.get_entry(record_id)
        if previous is not None and self.config.collision_policy == CollisionPolicy.STRICT:
            raise IdentifierCollisionError(record_id)

        filename = self.generate_filename(metadata)
        content = self.codec.encode(record_id, data, metadata)
        await self.fs.write_file(self._file_path(filename), content)

        now = utc_now()
        await self.catalog.add(
            IndexEntry(
                id=record_id,
                filename=filename,
                metadata=metadata,
                created=previous.created if previous else now,
                updated=now,
            )
        )

        if previous is not None:
            logger.debug(
                "Record %r moved to %s; %s is no longer referenced",
                record_id,
                filename,
                previous.filename,
            )
        else:
            logger.debug("Saved record %r to %s", record_id, filename)

    async def get(self, record_id: str) -> T | None:
        """Payload stored under ``record_id``, or None if unknown or unreadable."""
        self._require_initialized("get")
        filename = await self.catalog.get(record_id)
        if filename is None:
            return None

        try:
            return await self._load(record_id, filename)
        except (BackendError, RecordDecodeError) as e:
            if self.config.read_error_policy == ReadErrorPolicy.RAISE:
                raise
            logger.warning("Failed to read record %r from %s: %s", record_id, filename, e)
            return None

    async def find(self, keyword: str) -> list[T]:
        """Payloads whose metadata contains ``keyword`` (case-insensitive)."""
        self._require_initialized("find")
        return await self._load_entries(await self.catalog.find(keyword))

    async def query(self, conditions: dict[str, Any]) -> list[T]:
        """Payloads whose metadata strictly equals every condition."""
        self._require_initialized("query")
        return await self._load_entries(await self.catalog.query(conditions))

    async def list(self) -> list[RecordSummary]:
        """Ids and metadata from the catalog, without reading record files."""
        self._require_initialized("list")
        return [
            RecordSummary(id=entry.id, metadata=dict(entry.metadata))
            for entry in self.catalog.entries()
        ]

    async def delete(self, record_id: str) -> bool:
        """Delete a record file and its catalog entry.

        Returns:
            False if ``record_id`` is unknown, True otherwise.

        Raises:
            BackendError: Deleting the file or writing the catalog failed.
                Nothing is rolled back.
        """
        self._require_initialized("delete")
        filename = await self.catalog.get(record_id)
        if filename is None:
            return False

        await self.fs.delete_file(self._file_path(filename))
        await self.catalog.remove(record_id)
        logger.debug("Deleted record %r (%s)", record_id, filename)
        return True

    async def stats(self) -> VaultStats:
        """Collection statistics, computed from the catalog on every call."""
        self._require_initialized("stats")
        records = await self.catalog.query({})
        return VaultStats(
            name=self.metadata.name,
            total_records=len(records),
            created_at=self.metadata.created,
        )

    # Maintenance

    async def orphans(self) -> list[str]:
        """Record files in the collection that no catalog entry references."""
        self._require_initialized("orphans")
        referenced = self.catalog.filenames()
        return [
            name
            for name in await self.fs.list_dir(self.path)
            if self._is_record_file(name) and name not in referenced
        ]

    async def reindex(self) -> int:
        """Rebuild the catalog from the record files on disk.

        When several files carry the same id the most recently saved one
        wins. Files that cannot be decoded are skipped.

        Returns:
            Number of catalog entries after the rebuild.
        """
        self._require_initialized("reindex")
        if self.codec.format == RecordFormat.TEXT:
            logger.warning(
                "Vault %s stores text records without ids; nothing to reindex", self.name
            )
            return len(self.catalog)

        entries: dict[str, IndexEntry] = {}
        for name in sorted(await self.fs.list_dir(self.path)):
            if not self._is_record_file(name):
                continue
            try:
                content = await self.fs.read_file(self._file_path(name))
                record = self.codec.decode(content)
            except (BackendError, RecordDecodeError) as e:
                logger.warning("Skipping unreadable record file %s: %s", name, e)
                continue
            if not record.id:
                logger.warning("Skipping record file %s without an id", name)
                continue

            saved_at = _timestamp_from_filename(name) or utc_now()
            previous = entries.get(record.id)
            entries[record.id] = IndexEntry(
                id=record.id,
                filename=name,
                metadata=record.metadata,
                created=previous.created if previous else saved_at,
                updated=saved_at,
            )

        await self.catalog.rebuild(entries.values())
        logger.info("Reindexed vault %s: %d records", self.name, len(entries))
        return len(entries)

    # Helpers

    def _is_record_file(self, name: str) -> bool:
        return not name.startswith(".") and name.endswith(self.codec.extension)

    async def _load(self, record_id: str, filename: str) -> T:
        content = await self.fs.read_file(self._file_path(filename))
        record = self.codec.decode(content, expected_id=record_id)
        return self._validate(record.data)

    async def _load_entries(self, entries: list[IndexEntry]) -> list[T]:
        results: list[T] = []
        for entry in entries:
            try:
                results.append(await self._load(entry.id, entry.filename))
            except (BackendError, RecordDecodeError) as e:
                if self.config.read_error_policy == ReadErrorPolicy.RAISE:
                    raise
                logger.warning("Failed to load file %s: %s", entry.filename, e)
        return results

    def _validate(self, data: Any) -> T:
        if self._adapter is None:
            return data
        try:
            return self._adapter.validate_python(data)
        except ValidationError as e:
            raise RecordDecodeError(
                f"Stored data does not match {self.record_type!r}: {e}"
            ) from e

    def describe(self) -> str:
        """One-line summary for humans."""
        return (
            f"Vault [{self.name}] at {self.path} - {len(self.catalog)} records "
            f"({self.codec.format.value}/{self.codec.encoding.value})"
        )

    def __repr__(self) -> str:
        return f"Vault({self.path})"
