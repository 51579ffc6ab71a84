"""Connection strings for store backends.

Format: ``;``-separated ``key=value`` pairs, e.g.
``path=blogs/main;items=blogitems;format=yaml``.  Keys are
case-insensitive.  A bare value without ``=`` is read as ``path``.
"""

from __future__ import annotations

from inkwell.errors import ConfigError
from pydantic import BaseModel, Field

DEFAULT_ITEMS_FOLDER = "blogitems"
DEFAULT_FORMAT = "json"


class ConnectionString(BaseModel):
    """Parsed connection string."""

    path: str = ""
    items: str = DEFAULT_ITEMS_FOLDER
    format: str = DEFAULT_FORMAT
    extra: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def parse(cls, raw: str) -> ConnectionString:
        """Parse a connection string.

        Raises:
            ConfigError: On an empty key or a repeated key.
        """
        values: dict[str, str] = {}
        for part in raw.split(";"):
            part = part.strip()
            if not part:
                continue
            if "=" not in part:
                key, value = "path", part
            else:
                key, _, value = part.partition("=")
            key = key.strip().lower()
            if not key:
                raise ConfigError(f"Empty key in connection string: {raw!r}")
            if key in values:
                raise ConfigError(f"Duplicate key {key!r} in connection string: {raw!r}")
            values[key] = value.strip()

        known = {k: values.pop(k) for k in ("path", "items", "format") if k in values}
        if "format" in known:
            known["format"] = known["format"].lstrip(".").lower()
        return cls(**known, extra=values)

    def get(self, key: str, default: str = "") -> str:
        """Look up any key, including unrecognised ones."""
        key = key.lower()
        if key in ("path", "items", "format"):
            return getattr(self, key)
        return self.extra.get(key, default)

    def __str__(self) -> str:
        parts = [f"path={self.path}", f"items={self.items}", f"format={self.format}"]
        parts.extend(f"{k}={v}" for k, v in self.extra.items())
        return ";".join(parts)
