"""Persistence backend factory and registry."""

from __future__ import annotations

from pathlib import Path

from inkwell.content.connection import ConnectionString
from inkwell.content.providers.base import (
    IndexLoadResult,
    IndexLoadStatus,
    PersistenceBackend,
)
from inkwell.content.providers.files import FileBackend
from inkwell.content.providers.memory import MemoryBackend
from inkwell.errors import ConfigError

PROVIDERS = ("file", "memory")


def create_backend(
    provider: str,
    *,
    connection: ConnectionString | str = "",
    base_path: Path | str = ".",
) -> PersistenceBackend:
    """Create a backend for the given provider name.

    Args:
        provider: ``"file"`` or ``"memory"``.
        connection: Connection string (parsed or raw). Required by the
            file backend, ignored by the memory backend.
        base_path: Directory the connection's ``path`` is relative to.

    Returns:
        A PersistenceBackend instance.

    Raises:
        ConfigError: If the provider is unknown or the connection is unusable.
    """
    if isinstance(connection, str):
        connection = ConnectionString.parse(connection)

    provider = provider.strip().lower()
    if provider == "memory":
        return MemoryBackend()
    if provider == "file":
        return FileBackend.from_connection(connection, Path(base_path))

    raise ConfigError(f"Unknown provider: {provider!r} (expected one of {', '.join(PROVIDERS)})")


__all__ = [
    "PROVIDERS",
    "FileBackend",
    "IndexLoadResult",
    "IndexLoadStatus",
    "MemoryBackend",
    "PersistenceBackend",
    "create_backend",
]
