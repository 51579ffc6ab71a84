"""On-disk formats for the file backend.

Each serializer is keyed by the file extension it writes.  Models go
through ``model_dump(mode="json")`` so both formats store the same
field layout.
"""

from __future__ import annotations

from typing import Protocol, TypeVar

import yaml
from inkwell.errors import ConfigError
from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class Serializer(Protocol):
    extension: str

    def dumps(self, model: BaseModel) -> str: ...

    def loads(self, text: str, model_type: type[ModelT]) -> ModelT: ...


class JsonSerializer:
    extension = "json"

    def dumps(self, model: BaseModel) -> str:
        return model.model_dump_json(indent=2)

    def loads(self, text: str, model_type: type[ModelT]) -> ModelT:
        return model_type.model_validate_json(text)


class YamlSerializer:
    extension = "yaml"

    def dumps(self, model: BaseModel) -> str:
        return yaml.safe_dump(
            model.model_dump(mode="json"),
            sort_keys=False,
            allow_unicode=True,
        )

    def loads(self, text: str, model_type: type[ModelT]) -> ModelT:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        return model_type.model_validate(data)


SERIALIZERS: dict[str, Serializer] = {
    "json": JsonSerializer(),
    "yaml": YamlSerializer(),
}


def get_serializer(extension: str) -> Serializer:
    """Return the serializer for a file extension.

    Raises:
        ConfigError: If the extension has no serializer.
    """
    key = extension.lstrip(".").lower()
    if key not in SERIALIZERS:
        raise ConfigError(f"Unknown serialization format: {extension!r}")
    return SERIALIZERS[key]
