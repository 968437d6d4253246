"""Shared types and data structures for filevault."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CATALOG_VERSION = "1.0.8"
RECORD_VERSION = "1.0.0"
VAULT_VERSION = "1.0.0"


def utc_now() -> datetime:
    """Timezone-aware current time; every persisted timestamp uses UTC."""
    return datetime.now(timezone.utc)


class StorageMode(StrEnum):
    """Where a catalog keeps its state."""

    MEMORY = "memory"
    FILE = "file"


class RecordFormat(StrEnum):
    """Serialization format for record files."""

    JSON = "json"
    BINARY = "binary"
    TEXT = "text"


class TransportEncoding(StrEnum):
    """Reversible encoding applied after serialization. Not encryption."""

    UTF8 = "utf8"
    BASE64 = "base64"
    HEX = "hex"


class DecodePolicy(StrEnum):
    """How the codec reacts when the stored id differs from the expected id."""

    LENIENT = "lenient"
    STRICT = "strict"


class CollisionPolicy(StrEnum):
    """How ``save`` treats an id that is already stored."""

    OVERWRITE = "overwrite"
    STRICT = "strict"


class ReadErrorPolicy(StrEnum):
    """How read paths react to unreadable or undecodable record files."""

    SUPPRESS = "suppress"
    RAISE = "raise"


class IndexEntry(BaseModel):
    """One catalog row: maps a record id to its file and searchable metadata."""

    id: str
    filename: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created: datetime = Field(default_factory=utc_now)
    updated: datetime = Field(default_factory=utc_now)


class CatalogSnapshot(BaseModel):
    """On-disk shape of ``.index.json``."""

    model_config = ConfigDict(populate_by_name=True)

    records: list[IndexEntry] = Field(default_factory=list)
    search_indexes: list[str] = Field(default_factory=list, alias="searchIndexes")
    version: str = CATALOG_VERSION
    updated: datetime = Field(default_factory=utc_now)


class VaultMetadata(BaseModel):
    """On-disk shape of ``.vault.json``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    version: str
    created: datetime
    last_accessed: datetime = Field(alias="lastAccessed")
    encryption: bool = False
    compression: bool = False
    encoding: TransportEncoding = TransportEncoding.UTF8
    format: RecordFormat = RecordFormat.JSON


@dataclass(frozen=True)
class DecodedRecord:
    """A record envelope after decoding."""

    id: str
    data: Any
    metadata: dict[str, Any] = field(default_factory=dict)
    checksum: str | None = None
    version: str | None = None
    encrypted: bool = False


@dataclass(frozen=True)
class RecordSummary:
    """Catalog-only view of a record returned by ``Vault.list``."""

    id: str
    metadata: dict[str, Any]


@dataclass(frozen=True)
class VaultStats:
    """Statistics for a single collection, computed on demand."""

    name: str
    total_records: int
    created_at: datetime


@dataclass(frozen=True)
class CollectionStats:
    """Statistics across every collection of a ``CollectionVault``."""

    total_records: int
    collections: dict[str, int]
