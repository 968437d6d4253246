"""Configuration management for filevault."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from filevault.errors import ConfigError
from filevault.types import (
    VAULT_VERSION,
    CollisionPolicy,
    DecodePolicy,
    ReadErrorPolicy,
    RecordFormat,
    TransportEncoding,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key, "").lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


def _get_env_choice(key: str, enum_type: type, default):
    """Get environment variable as a member of a StrEnum, falling back on typos."""
    value = get_env(key)
    if not value:
        return default
    try:
        return enum_type(value.strip().lower())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", key, value, default.value)
        return default


# Data directory (XDG-style, defaults to ~/.filevault)
FILEVAULT_DATA_DIR = Path(
    get_env("FILEVAULT_DATA_DIR", os.path.expanduser("~/.filevault"))
    or os.path.expanduser("~/.filevault")
)

# Optional YAML settings file inside the data directory
SETTINGS_FILENAME = "filevault.yaml"

# Logging
LOG_LEVEL = get_env("FILEVAULT_LOG_LEVEL") or get_env("LOG_LEVEL", "INFO") or "INFO"

# Store behaviour
DEFAULT_COLLISION_POLICY = _get_env_choice(
    "FILEVAULT_COLLISION_POLICY", CollisionPolicy, CollisionPolicy.OVERWRITE
)
DEFAULT_DECODE_POLICY = _get_env_choice(
    "FILEVAULT_DECODE_POLICY", DecodePolicy, DecodePolicy.LENIENT
)
DEFAULT_READ_ERROR_POLICY = _get_env_choice(
    "FILEVAULT_READ_ERROR_POLICY", ReadErrorPolicy, ReadErrorPolicy.SUPPRESS
)


class VaultConfig(BaseModel):
    """Typed configuration for one collection.

    Frozen to prevent accidental mutation. Extra fields are forbidden to
    catch typos in settings files.

    ``encryption`` and ``compression`` are recorded in ``.vault.json`` and on
    each record envelope, but no cipher or compressor is applied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    name: str = "vault"
    version: str = VAULT_VERSION
    encryption: bool = False
    compression: bool = False
    encoding: TransportEncoding = TransportEncoding.UTF8
    format: RecordFormat = RecordFormat.JSON
    collision_policy: CollisionPolicy = DEFAULT_COLLISION_POLICY
    decode_policy: DecodePolicy = DEFAULT_DECODE_POLICY
    read_error_policy: ReadErrorPolicy = DEFAULT_READ_ERROR_POLICY


class CollectionSettings(BaseModel):
    """Per-collection overrides; unset fields inherit the vault-wide defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    encryption: bool | None = None
    compression: bool | None = None
    encoding: TransportEncoding | None = None
    format: RecordFormat | None = None
    collision_policy: CollisionPolicy | None = None
    decode_policy: DecodePolicy | None = None
    read_error_policy: ReadErrorPolicy | None = None


class VaultSettings(CollectionSettings):
    """Typed contents of ``filevault.yaml``.

    Top-level keys are defaults for every collection; ``collections`` maps a
    collection name to its overrides.
    """

    collections: dict[str, CollectionSettings] = Field(default_factory=dict)

    def config_for(self, path: str, name: str) -> VaultConfig:
        """Build the ``VaultConfig`` for a collection stored at ``path``."""
        values: dict[str, Any] = {"path": path, "name": name}
        layers = [self, self.collections.get(name)]
        for layer in layers:
            if layer is None:
                continue
            for key in CollectionSettings.model_fields:
                value = getattr(layer, key)
                if value is not None:
                    values[key] = value
        return VaultConfig(**values)


def load_settings(path: Path | str | None = None) -> VaultSettings:
    """Load ``filevault.yaml``.

    Args:
        path: Settings file (defaults to ``FILEVAULT_DATA_DIR/filevault.yaml``)

    Returns:
        VaultSettings; defaults when the file is missing or empty.

    Raises:
        ConfigError: If the file is not valid YAML or not a valid mapping.
    """
    settings_file = Path(path) if path else FILEVAULT_DATA_DIR / SETTINGS_FILENAME

    if not settings_file.exists():
        logger.debug("No settings file at %s", settings_file)
        return VaultSettings()

    try:
        with open(settings_file, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("Invalid YAML in %s: %s", settings_file, e)
        raise ConfigError(f"Invalid YAML in {settings_file}: {e}") from e

    if raw is None:
        return VaultSettings()

    if not isinstance(raw, dict):
        raise ConfigError(
            f"{settings_file.name} must be a mapping, got {type(raw).__name__}"
        )

    try:
        settings = VaultSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {settings_file}: {e}") from e

    logger.debug(
        "Settings loaded from %s: collections=%d",
        settings_file,
        len(settings.collections),
    )
    return settings


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure and return logger."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
    )
    return logging.getLogger("filevault")
