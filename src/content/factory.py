"""Build ready-to-use stores from configuration."""

from __future__ import annotations

import logging
import threading

from inkwell.config import InkwellConfig, ResolvedStoreConfig
from inkwell.content.connection import ConnectionString
from inkwell.content.ids import IdCodec
from inkwell.content.providers import create_backend
from inkwell.content.store import ContentStore
from inkwell.errors import ConfigError

logger = logging.getLogger(__name__)


def _connection_for(target: ResolvedStoreConfig) -> ConnectionString:
    connection = ConnectionString.parse(target.connection)
    if target.format:
        connection = connection.model_copy(update={"format": target.format.lstrip(".").lower()})
    return connection


def create_store(
    config: InkwellConfig,
    name: str | None = None,
    *,
    initialise: bool = True,
) -> ContentStore:
    """Create a store for a configured (optionally named) target.

    Raises:
        ConfigError: Unknown store name, provider, format or alphabet.
        StoreError: ``initialise`` was requested and failed.
    """
    try:
        target = config.store.get_target(name)
    except KeyError as exc:
        raise ConfigError(f"No store named {exc.args[0]!r} is configured") from exc

    try:
        codec = IdCodec(config.ids.alphabet) if config.ids.alphabet else IdCodec()
    except ValueError as exc:
        raise ConfigError(f"Invalid id alphabet: {exc}") from exc

    backend = create_backend(
        target.provider,
        connection=_connection_for(target),
        base_path=target.base_path,
    )
    store = ContentStore(backend, codec=codec)
    if initialise:
        store.initialise()
    return store


class StoreRegistry:
    """Lazily created, initialised stores keyed by configured name.

    The unnamed entry (``None``) resolves through ``[store].default``.
    """

    def __init__(self, config: InkwellConfig) -> None:
        self.config = config
        self._stores: dict[str | None, ContentStore] = {}
        self._lock = threading.Lock()

    @property
    def names(self) -> list[str]:
        return self.config.store.target_names

    def get(self, name: str | None = None) -> ContentStore:
        with self._lock:
            store = self._stores.get(name)
            if store is None:
                logger.debug("Opening store %r", name or self.config.store.default or "<default>")
                store = create_store(self.config, name)
                self._stores[name] = store
            return store
