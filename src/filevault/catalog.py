"""Catalog - id to filename index with metadata search for one collection.

The catalog is the only durable map from record ids to record files. In
file mode the whole catalog (entries, search terms and version) is written
to ``<path>/.index.json`` after every mutation; there are no partial writes.
Concurrent writers to the same catalog file race and the last write wins.
"""

import logging
import re
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from filevault.backends.base import AsyncFileSystem, join_path
from filevault.codec import to_jsonable
from filevault.errors import BackendError
from filevault.types import (
    CATALOG_VERSION,
    CatalogSnapshot,
    IndexEntry,
    StorageMode,
    utc_now,
)

logger = logging.getLogger(__name__)

INDEX_FILENAME = ".index.json"

# Words shorter than this are not added to the search terms
MIN_TERM_LENGTH = 3

_WHITESPACE = re.compile(r"\s+")


def _iter_strings(value: Any) -> Iterable[str]:
    """Yield every string nested anywhere inside dicts and lists."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_strings(item)


def extract_search_terms(metadata: dict[str, Any]) -> list[str]:
    """Full string values plus their lower-cased words of 3+ characters."""
    terms: dict[str, None] = {}
    for text in _iter_strings(metadata):
        terms[text] = None
        for word in _WHITESPACE.split(text.lower()):
            if len(word) >= MIN_TERM_LENGTH:
                terms[word] = None
    return list(terms)


def metadata_contains(metadata: dict[str, Any], keyword: str) -> bool:
    """Case-insensitive substring match against every nested string value."""
    needle = keyword.lower()
    return any(needle in text.lower() for text in _iter_strings(metadata))


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without numeric or boolean coercion.

    ``1``, ``1.0`` and ``True`` are all different values here, recursively.
    """
    if type(left) is not type(right):
        return False
    if isinstance(left, dict):
        return left.keys() == right.keys() and all(
            strict_equals(left[k], right[k]) for k in left
        )
    if isinstance(left, list):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    return left == right


def matches_conditions(metadata: dict[str, Any], conditions: dict[str, Any]) -> bool:
    """Every condition key must be present with a strictly equal value."""
    for key, expected in conditions.items():
        if key not in metadata or not strict_equals(metadata[key], expected):
            return False
    return True


class Catalog:
    """Durable id to filename mapping plus searchable metadata index."""

    def __init__(
        self,
        path: str,
        fs: AsyncFileSystem | None = None,
        storage: StorageMode = StorageMode.FILE,
    ):
        """
        Initialize catalog. Performs no I/O; call ``load()`` to read state.

        Args:
            path: Collection directory holding ``.index.json``
            fs: Storage backend (required for file mode)
            storage: MEMORY keeps state in process only, FILE persists it
        """
        self.storage = StorageMode(storage)
        if self.storage == StorageMode.FILE and fs is None:
            raise ValueError("File storage mode requires a filesystem backend")
        self.path = path
        self.fs = fs
        self._records: dict[str, IndexEntry] = {}
        self._search_terms: dict[str, None] = {}

    @property
    def index_path(self) -> str:
        return join_path(self.path, INDEX_FILENAME)

    @property
    def search_terms(self) -> list[str]:
        """Derived search terms, in first-seen order."""
        return list(self._search_terms)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def entries(self) -> list[IndexEntry]:
        """All entries, ascending by id."""
        return self._sorted(self._records.values())

    def filenames(self) -> set[str]:
        """Every filename currently referenced."""
        return {entry.filename for entry in self._records.values()}

    # Persistence

    async def load(self) -> bool:
        """Read ``.index.json`` into memory.

        A missing file leaves the catalog empty. An unreadable or invalid
        file is logged and also leaves the catalog empty, favouring
        availability over failing on corruption.

        Returns:
            True if a snapshot was loaded, False otherwise.
        """
        self._records.clear()
        self._search_terms.clear()

        if self.storage != StorageMode.FILE:
            return False

        try:
            if not await self.fs.exists(self.index_path):
                logger.debug("No catalog at %s", self.index_path)
                return False
            content = await self.fs.read_file(self.index_path)
            snapshot = CatalogSnapshot.model_validate_json(content)
        except (BackendError, ValidationError, ValueError) as e:
            logger.warning(
                "Catalog at %s could not be loaded, starting empty: %s",
                self.index_path,
                e,
            )
            return False

        for entry in snapshot.records:
            self._records[entry.id] = entry
        for term in snapshot.search_indexes:
            self._search_terms[term] = None

        logger.debug(
            "Loaded catalog %s: %d records, %d terms",
            self.index_path,
            len(self._records),
            len(self._search_terms),
        )
        return True

    async def save(self) -> None:
        """Write the full catalog snapshot (file mode only)."""
        await self._write(self._records, self._search_terms)

    async def _write(
        self, records: dict[str, IndexEntry], search_terms: dict[str, None]
    ) -> None:
        if self.storage != StorageMode.FILE:
            return

        snapshot = CatalogSnapshot(
            records=list(records.values()),
            search_indexes=list(search_terms),
            version=CATALOG_VERSION,
            updated=utc_now(),
        )
        await self.fs.ensure_dir(self.path)
        await self.fs.write_file(
            self.index_path, snapshot.model_dump_json(by_alias=True, indent=2)
        )

    async def _commit(
        self, records: dict[str, IndexEntry], search_terms: dict[str, None]
    ) -> None:
        """Persist a new state, then adopt it. A failed write changes nothing."""
        await self._write(records, search_terms)
        self._records = records
        self._search_terms = search_terms

    # Index operations

    async def get(self, record_id: str) -> str | None:
        """Filename for ``record_id``, or None."""
        entry = self._records.get(record_id)
        return entry.filename if entry else None

    async def get_entry(self, record_id: str) -> IndexEntry | None:
        return self._records.get(record_id)

    async def add(self, entry: IndexEntry) -> None:
        """Insert or replace the entry for ``entry.id``."""
        stored = entry.model_copy(
            update={"metadata": to_jsonable(entry.metadata), "updated": utc_now()}
        )
        records = {**self._records, stored.id: stored}
        search_terms = dict(self._search_terms)
        for term in extract_search_terms(stored.metadata):
            search_terms[term] = None
        await self._commit(records, search_terms)

    async def remove(self, record_id: str) -> None:
        """Remove an entry; unknown ids are ignored."""
        if record_id not in self._records:
            await self.save()
            return
        records = {k: v for k, v in self._records.items() if k != record_id}
        # Rebuilt rather than decremented so no stale terms survive
        await self._commit(records, self._terms_for(records.values()))

    async def find(self, keyword: str) -> list[IndexEntry]:
        """Entries whose metadata contains ``keyword`` in any string value."""
        return self._sorted(
            entry
            for entry in self._records.values()
            if metadata_contains(entry.metadata, keyword)
        )

    async def query(self, conditions: dict[str, Any]) -> list[IndexEntry]:
        """Entries whose metadata strictly equals every condition."""
        conditions = to_jsonable(conditions)
        return self._sorted(
            entry
            for entry in self._records.values()
            if matches_conditions(entry.metadata, conditions)
        )

    async def rebuild(self, entries: Iterable[IndexEntry]) -> None:
        """Replace the catalog content and regenerate search terms."""
        records: dict[str, IndexEntry] = {}
        for entry in entries:
            records[entry.id] = entry.model_copy(
                update={"metadata": to_jsonable(entry.metadata)}
            )
        await self._commit(records, self._terms_for(records.values()))

    async def exists(self) -> bool:
        """Memory mode: any entries held. File mode: ``.index.json`` present."""
        if self.storage == StorageMode.MEMORY:
            return len(self._records) > 0
        return await self.fs.exists(self.index_path)

    # Helpers

    @staticmethod
    def _terms_for(entries: Iterable[IndexEntry]) -> dict[str, None]:
        terms: dict[str, None] = {}
        for entry in entries:
            for term in extract_search_terms(entry.metadata):
                terms[term] = None
        return terms

    @staticmethod
    def _sorted(entries: Iterable[IndexEntry]) -> list[IndexEntry]:
        return sorted(entries, key=lambda entry: entry.id)

    def __repr__(self) -> str:
        return (
            f"Catalog({self.path}, storage={self.storage.value}, "
            f"records={len(self._records)})"
        )
