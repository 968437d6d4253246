"""Storage backends - the narrow file capability surface the vault consumes."""

from filevault.backends.base import AsyncFileSystem, join_path
from filevault.backends.local import LocalFileSystem
from filevault.backends.memory import MemoryFileSystem

__all__ = [
    "AsyncFileSystem",
    "LocalFileSystem",
    "MemoryFileSystem",
    "join_path",
]
