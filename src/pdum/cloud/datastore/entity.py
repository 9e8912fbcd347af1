"""Datastore entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar

from pdum.cloud._helpers import require

from .index_excluded import IndexExcluded
from .key import Key
from .mapping import from_value, to_value
from .value import decode_properties, encode_properties

M = TypeVar("M")


@dataclass
class Entity:
    """A key plus its properties.

    Attributes
    ----------
    key : Key
        The entity key (may be incomplete before the first put).
    properties : dict[str, Any]
        Property values, as described in :mod:`pdum.cloud.datastore.value`.
    """

    key: Key
    properties: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        return self.properties[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.properties.get(name, default)

    @classmethod
    def from_model(cls, key: Key, obj: Any) -> "Entity":
        """Build an entity from a ``@model`` dataclass instance."""
        properties = to_value(obj)
        if not isinstance(properties, dict):
            raise TypeError(f"{type(obj).__name__} does not map to an entity")
        return cls(key, properties)

    def to_model(self, cls: type[M]) -> M:
        """Map the properties onto a ``@model`` dataclass."""
        return from_value(cls, self.properties)

    def to_wire(self, project: str, index_excluded: Optional[IndexExcluded] = None) -> dict:
        excluded = index_excluded.for_kind(self.key.kind) if index_excluded else frozenset()
        return {
            "key": self.key.to_wire(project),
            "properties": encode_properties(self.properties, project, excluded),
        }

    @classmethod
    def from_wire(cls, data: dict) -> "Entity":
        key = Key.from_wire(require(data, "key", what="entity"))
        return cls(key, decode_properties(data.get("properties", {})))


__all__ = ["Entity"]
