"""Shared test fixtures and configuration."""

from __future__ import annotations

import pytest
import pytest_asyncio

from filevault.backends import LocalFileSystem, MemoryFileSystem
from filevault.config import VaultConfig
from filevault.vault import Vault


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def mock_env(monkeypatch):
    """Set up mock environment variables."""
    env_vars = {
        "FILEVAULT_DATA_DIR": "/tmp/test_filevault",
        "FILEVAULT_LOG_LEVEL": "DEBUG",
        "FILEVAULT_COLLISION_POLICY": "strict",
        "FILEVAULT_DECODE_POLICY": "strict",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture
def memory_fs():
    """In-memory storage backend."""
    return MemoryFileSystem()


@pytest.fixture
def local_fs():
    """Local filesystem backend."""
    return LocalFileSystem()


@pytest.fixture
def vault_path(tmp_path):
    """Collection directory path as a backend string."""
    return str(tmp_path / "vault")


@pytest.fixture
def make_config(vault_path):
    """Factory for VaultConfig objects rooted at the test collection."""

    def _make_config(**overrides):
        values = {"path": vault_path, "name": "test-vault"}
        values.update(overrides)
        return VaultConfig(**values)

    return _make_config


@pytest_asyncio.fixture
async def vault(make_config, memory_fs):
    """An initialized vault on the in-memory backend."""
    return await Vault.create(make_config(), memory_fs)


@pytest.fixture
def employees():
    """Sample records: (id, data, metadata)."""
    return [
        (
            "alice",
            {"name": "Alice", "email": "alice@example.com"},
            {"department": "Engineering", "type": "employee", "level": 3},
        ),
        (
            "bob",
            {"name": "Bob", "email": "bob@example.com"},
            {"department": "Engineering", "type": "employee", "level": 2},
        ),
        (
            "carol",
            {"name": "Carol", "email": "carol@example.com"},
            {"department": "Sales", "type": "employee", "level": 3},
        ),
    ]
