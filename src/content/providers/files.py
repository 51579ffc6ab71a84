"""File backend: one index file plus one file per item.

Layout under the store root::

    <root>/index.<ext>                    headers only
    <root>/<items_folder>/<id>.<ext>      full item

Files are written to a temporary sibling and moved into place, so a
reader never sees a partially written file.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from inkwell.content.connection import DEFAULT_ITEMS_FOLDER, ConnectionString
from inkwell.content.models import Header, Index, Item
from inkwell.content.providers.base import IndexLoadResult, PersistenceBackend
from inkwell.content.serializers import Serializer, get_serializer
from inkwell.errors import ConfigError, CouldNotLoadError, CouldNotSaveError

logger = logging.getLogger(__name__)

INDEX_STEM = "index"

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class FileBackend(PersistenceBackend):
    """Stores serialized models as files below ``root``."""

    name = "file"

    def __init__(
        self,
        root: Path,
        items_folder: str = DEFAULT_ITEMS_FOLDER,
        extension: str = "json",
    ) -> None:
        if not items_folder or Path(items_folder).is_absolute() or ".." in Path(items_folder).parts:
            raise ConfigError(f"Invalid items folder: {items_folder!r}")
        self.root = Path(root)
        self.items_folder = items_folder
        self.serializer: Serializer = get_serializer(extension)
        self.extension = self.serializer.extension

    @classmethod
    def from_connection(cls, connection: ConnectionString, base_path: Path) -> FileBackend:
        """Build a backend rooted at ``base_path / connection.path``."""
        if not connection.path:
            raise ConfigError("File backend needs a 'path' in its connection string")
        return cls(
            root=Path(base_path) / connection.path,
            items_folder=connection.items,
            extension=connection.format,
        )

    # ── Paths ────────────────────────────────────────────────────

    @property
    def index_path(self) -> Path:
        return self.root / f"{INDEX_STEM}.{self.extension}"

    @property
    def items_dir(self) -> Path:
        return self.root / self.items_folder

    def item_path(self, header_id: str) -> Path:
        if not _SAFE_NAME.match(header_id or ""):
            raise ValueError(f"Unsafe item id for a file name: {header_id!r}")
        return self.items_dir / f"{header_id}.{self.extension}"

    def describe(self) -> str:
        return str(self.root)

    # ── Raw I/O ──────────────────────────────────────────────────

    def _write(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ── Index ────────────────────────────────────────────────────

    def load_index(self) -> IndexLoadResult:
        path = self.index_path
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No index file at %s", path)
            return IndexLoadResult.missing()
        except OSError as exc:
            raise CouldNotLoadError(f"Could not read index {path}: {exc}") from exc
        try:
            index = self.serializer.loads(text, Index)
        except ValueError as exc:
            raise CouldNotLoadError(f"Corrupt index {path}: {exc}") from exc
        return IndexLoadResult.found(index)

    def save_index(self, index: Index) -> None:
        path = self.index_path
        try:
            self._write(path, self.serializer.dumps(index))
        except (OSError, ValueError) as exc:
            raise CouldNotSaveError(f"Could not write index {path}: {exc}") from exc

    # ── Items ────────────────────────────────────────────────────

    def load_item(self, header: Header) -> Item:
        try:
            path = self.item_path(header.id)
            text = path.read_text(encoding="utf-8")
            item = self.serializer.loads(text, Item)
        except FileNotFoundError as exc:
            raise CouldNotLoadError(f"Item file missing for id {header.id!r}") from exc
        except (OSError, ValueError) as exc:
            raise CouldNotLoadError(f"Could not read item {header.id!r}: {exc}") from exc
        if item.header.id != header.id:
            raise CouldNotLoadError(
                f"Item file for {header.id!r} holds id {item.header.id!r}"
            )
        return item

    def save_item(self, item: Item) -> None:
        try:
            path = self.item_path(item.header.id)
            self._write(path, self.serializer.dumps(item))
        except (OSError, ValueError) as exc:
            raise CouldNotSaveError(f"Could not write item {item.header.id!r}: {exc}") from exc

    def discard_item(self, header: Header) -> None:
        try:
            self.item_path(header.id).unlink(missing_ok=True)
        except (OSError, ValueError) as exc:
            raise CouldNotSaveError(f"Could not remove item {header.id!r}: {exc}") from exc
