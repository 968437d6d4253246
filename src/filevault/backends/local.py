"""Local directory backend built on pathlib."""

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from filevault.errors import BackendError

logger = logging.getLogger(__name__)


class LocalFileSystem:
    """Async adapter over the local filesystem.

    Blocking calls run in a worker thread. Writes go to a temporary file in
    the target directory and are moved into place with ``os.replace`` so a
    crash never leaves a half-written catalog or record behind.
    """

    def __init__(self, root: Path | str | None = None):
        """
        Initialize the backend.

        Args:
            root: Optional base directory; relative paths resolve against it.
        """
        self.root = Path(root).expanduser() if root else None

    def _resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        if self.root is not None and not p.is_absolute():
            return self.root / p
        return p

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).exists)

    async def read_file(self, path: str) -> str:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise BackendError(f"Failed to read {target}: {e}", path=path) from e

    async def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write_atomic, target, content)
        except OSError as e:
            raise BackendError(f"Failed to write {target}: {e}", path=path) from e

    @staticmethod
    def _write_atomic(target: Path, content: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def delete_file(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as e:
            raise BackendError(f"Failed to delete {target}: {e}", path=path) from e

    async def ensure_dir(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise BackendError(
                f"Failed to create directory {target}: {e}", path=path
            ) from e

    async def list_dir(self, path: str) -> list[str]:
        target = self._resolve(path)

        def _list() -> list[str]:
            if not target.is_dir():
                return []
            return sorted(entry.name for entry in target.iterdir())

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise BackendError(f"Failed to list {target}: {e}", path=path) from e

    def __repr__(self) -> str:
        return f"LocalFileSystem({self.root or '.'})"
