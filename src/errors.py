"""Exception hierarchy for the content store.

Backends and the store engine raise these; callers (CLI, web layers)
translate them into user-facing output.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every content store failure."""


class NotInitialisedError(StoreError):
    """The store was used before a successful ``initialise()``."""

    def __init__(self, message: str = "Content store is not initialised") -> None:
        super().__init__(message)


class ItemNotFoundError(StoreError):
    """The requested id is not present in the index."""

    def __init__(self, header_id: str) -> None:
        self.header_id = header_id
        super().__init__(f"Item with id {header_id!r} not found")


class CouldNotLoadError(StoreError):
    """Reading or deserializing persisted content failed."""


class CouldNotSaveError(StoreError):
    """Writing or serializing content failed."""


class InvalidIdError(StoreError, ValueError):
    """An external id could not be decoded."""

    def __init__(self, value: object, reason: str = "malformed id") -> None:
        self.value = value
        super().__init__(f"Invalid id {value!r}: {reason}")


class CastMismatchError(StoreError):
    """A caller handed the store an object of the wrong type."""


class ConfigError(Exception):
    """Configuration could not be turned into a working store."""

