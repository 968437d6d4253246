"""Exception hierarchy for filevault.

Read paths report missing records as ``None``; these exceptions cover the
cases that are surfaced to callers.
"""


class VaultError(Exception):
    """Base class for all filevault errors."""

    pass


class ConfigError(VaultError):
    """Raised when a settings file is invalid."""

    pass


class BackendError(VaultError):
    """Raised when the storage backend fails (I/O, permissions, disk full)."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class RecordDecodeError(VaultError):
    """Raised when stored content cannot be turned back into a record."""

    pass


class IdentifierCollisionError(VaultError):
    """Raised by strict collision policy when an id is already stored."""

    def __init__(self, record_id: str):
        super().__init__(f"Record id already exists: {record_id!r}")
        self.record_id = record_id


class VaultNotInitializedError(VaultError):
    """Raised when a vault is used before ``initialize()`` has completed."""

    pass


class VaultNotFoundError(VaultError):
    """Raised when opening a path that holds no valid vault metadata."""

    pass
