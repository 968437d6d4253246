"""filevault - file-backed typed record store with a searchable catalog.

Records are stored one file per id inside a collection directory. A catalog
(``.index.json``) maps ids to generated filenames and indexes each record's
metadata for keyword and exact-match search.
"""

from filevault.backends import AsyncFileSystem, LocalFileSystem, MemoryFileSystem
from filevault.catalog import Catalog
from filevault.codec import RecordCodec
from filevault.collection_vault import CollectionVault
from filevault.config import VaultConfig, VaultSettings, load_settings
from filevault.errors import (
    BackendError,
    ConfigError,
    IdentifierCollisionError,
    RecordDecodeError,
    VaultError,
    VaultNotFoundError,
    VaultNotInitializedError,
)
from filevault.types import (
    CollisionPolicy,
    DecodePolicy,
    IndexEntry,
    ReadErrorPolicy,
    RecordFormat,
    RecordSummary,
    StorageMode,
    TransportEncoding,
)
from filevault.vault import Vault

__version__ = "0.1.0"

__all__ = [
    "AsyncFileSystem",
    "BackendError",
    "Catalog",
    "CollectionVault",
    "CollisionPolicy",
    "ConfigError",
    "DecodePolicy",
    "IdentifierCollisionError",
    "IndexEntry",
    "LocalFileSystem",
    "MemoryFileSystem",
    "ReadErrorPolicy",
    "RecordCodec",
    "RecordDecodeError",
    "RecordFormat",
    "RecordSummary",
    "StorageMode",
    "TransportEncoding",
    "Vault",
    "VaultConfig",
    "VaultError",
    "VaultNotFoundError",
    "VaultNotInitializedError",
    "VaultSettings",
    "load_settings",
]
