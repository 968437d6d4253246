"""In-memory backend for tests and throwaway vaults."""

from filevault.errors import BackendError


def _normalize(path: str) -> str:
    return path.rstrip("/") or "/"


class MemoryFileSystem:
    """Dict-backed storage with the same semantics as ``LocalFileSystem``.

    Directories are tracked explicitly; writing a file implicitly creates its
    parent directories.
    """

    def __init__(self):
        self.files: dict[str, str] = {}
        self.dirs: set[str] = set()

    def _add_parents(self, path: str) -> None:
        parent = path.rsplit("/", 1)[0] if "/" in path else ""
        while parent:
            self.dirs.add(parent)
            parent = parent.rsplit("/", 1)[0] if "/" in parent else ""

    async def exists(self, path: str) -> bool:
        path = _normalize(path)
        return path in self.files or path in self.dirs

    async def read_file(self, path: str) -> str:
        path = _normalize(path)
        try:
            return self.files[path]
        except KeyError:
            raise BackendError(f"File not found: {path}", path=path) from None

    async def write_file(self, path: str, content: str) -> None:
        path = _normalize(path)
        if path in self.dirs:
            raise BackendError(f"Is a directory: {path}", path=path)
        self._add_parents(path)
        self.files[path] = content

    async def delete_file(self, path: str) -> None:
        self.files.pop(_normalize(path), None)

    async def ensure_dir(self, path: str) -> None:
        path = _normalize(path)
        if path in self.files:
            raise BackendError(f"Not a directory: {path}", path=path)
        self.dirs.add(path)
        self._add_parents(path)

    async def list_dir(self, path: str) -> list[str]:
        prefix = _normalize(path) + "/"
        if prefix == "//":
            prefix = "/"
        names = set()
        for entry in list(self.files) + list(self.dirs):
            if entry.startswith(prefix):
                rest = entry[len(prefix) :]
                if rest:
                    names.add(rest.split("/", 1)[0])
        return sorted(names)

    def __repr__(self) -> str:
        return f"MemoryFileSystem(files={len(self.files)})"
