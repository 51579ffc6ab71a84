"""Unified configuration loaded from .inkwell.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".inkwell.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "inkwell" / "config.toml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class StoreTargetConfig(BaseModel):
    """A single named store (e.g. [store.travel])."""

    provider: str | None = None
    base_path: str | None = None
    connection: str | None = None
    format: str | None = None


class ResolvedStoreConfig(BaseModel):
    """Store settings after named-target inheritance."""

    name: str = ""
    provider: str = "file"
    base_path: str = "."
    connection: str = "path=blog"
    format: str | None = None


class StoreSectionConfig(BaseModel):
    """[store] section with optional named stores.

    Flat (single store)::

        [store]
        provider = "file"
        connection = "path=blog;items=blogitems"

    Named stores inherit anything they leave unset::

        [store]
        default = "main"
        base_path = "/srv/sites"

        [store.main]
        connection = "path=main"

        [store.drafts]
        provider = "memory"
    """

    default: str = ""
    provider: str = "file"
    base_path: str = "."
    connection: str = "path=blog"
    format: str | None = None
    targets: dict[str, StoreTargetConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _extract_targets(cls, data: Any) -> Any:
        """Extract named sub-dicts as targets before validation."""
        if not isinstance(data, dict):
            return data
        data = dict(data)  # shallow copy
        known = {"default", "provider", "base_path", "connection", "format", "targets"}
        targets: dict[str, object] = {}
        for key in list(data.keys()):
            if key not in known and isinstance(data[key], dict):
                targets[key] = data.pop(key)
        if targets:
            existing = data.get("targets", {})
            if isinstance(existing, dict):
                existing = dict(existing)
                existing.update(targets)
                data["targets"] = existing
            else:
                data["targets"] = targets
        return data

    def get_target(self, name: str | None = None) -> ResolvedStoreConfig:
        """Resolve a named store, falling back to the flat settings.

        Args:
            name: Store name. If None, uses ``self.default``; with no
                default, returns the flat settings.

        Raises:
            KeyError: If the given name, or the configured default, is not
                a named store.
        """
        target_name = name or self.default
        if target_name and target_name not in self.targets:
            raise KeyError(target_name)
        if target_name:
            t = self.targets[target_name]
            return ResolvedStoreConfig(
                name=target_name,
                provider=t.provider or self.provider,
                base_path=t.base_path or self.base_path,
                connection=t.connection or self.connection,
                format=t.format or self.format,
            )
        return ResolvedStoreConfig(
            provider=self.provider,
            base_path=self.base_path,
            connection=self.connection,
            format=self.format,
        )

    @property
    def target_names(self) -> list[str]:
        """List all named stores."""
        return list(self.targets.keys())


class IdsConfig(BaseModel):
    """[ids] section. An empty alphabet selects the built-in one."""

    alphabet: str = ""


class LoggingConfig(BaseModel):
    """[logging] section."""

    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return value


class InkwellConfig(BaseModel):
    """Top-level configuration model."""

    store: StoreSectionConfig = Field(default_factory=StoreSectionConfig)
    ids: IdsConfig = Field(default_factory=IdsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path | None = None) -> InkwellConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .inkwell.toml in CWD
    3. ~/.config/inkwell/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged InkwellConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = InkwellConfig.model_validate(data) if data else InkwellConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: InkwellConfig, **cli_kwargs: object) -> InkwellConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "provider": ("store", "provider"),
        "base_path": ("store", "base_path"),
        "connection": ("store", "connection"),
        "format": ("store", "format"),
        "log_level": ("logging", "level"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return InkwellConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: InkwellConfig) -> InkwellConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "INKWELL_PROVIDER": ("store", "provider"),
        "INKWELL_BASE_PATH": ("store", "base_path"),
        "INKWELL_CONNECTION": ("store", "connection"),
        "INKWELL_FORMAT": ("store", "format"),
        "INKWELL_ID_ALPHABET": ("ids", "alphabet"),
        "INKWELL_LOG_LEVEL": ("logging", "level"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    # Per-store env vars: INKWELL_<NAME>_CONNECTION, INKWELL_<NAME>_BASE_PATH
    targets = data.get("store", {}).get("targets", {})
    for target_name in list(targets.keys()):
        prefix = f"INKWELL_{target_name.upper()}_"
        for env_suffix, field in [("CONNECTION", "connection"), ("BASE_PATH", "base_path")]:
            val = os.environ.get(f"{prefix}{env_suffix}")
            if val is not None:
                targets[target_name][field] = val

    return InkwellConfig.model_validate(data)
