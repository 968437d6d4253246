"""Storage backend protocol.

Backends are path-addressed with ``/``-separated strings so the same vault
code can sit on a local directory, an in-memory dict or an object store
prefix. Every failure must surface as ``BackendError``.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AsyncFileSystem(Protocol):
    """Capabilities a vault needs from its storage."""

    async def exists(self, path: str) -> bool:
        """Whether a file or directory exists at ``path``."""
        ...

    async def read_file(self, path: str) -> str:
        """Return the text stored at ``path``."""
        ...

    async def write_file(self, path: str, content: str) -> None:
        """Create or replace the file at ``path``."""
        ...

    async def delete_file(self, path: str) -> None:
        """Delete the file at ``path``. A missing file is not an error."""
        ...

    async def ensure_dir(self, path: str) -> None:
        """Create ``path`` and its parents if needed."""
        ...

    async def list_dir(self, path: str) -> list[str]:
        """Entry names directly under ``path``; empty if it does not exist."""
        ...


def join_path(base: str, *parts: str) -> str:
    """Join backend path segments with ``/``."""
    path = base.rstrip("/") if base else ""
    for part in parts:
        part = part.strip("/")
        if part:
            path = f"{path}/{part}" if path or base else part
    return path or base or ""
