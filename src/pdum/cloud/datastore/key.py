"""Datastore keys."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Union

from pdum.cloud._helpers import require
from pdum.cloud.types.exceptions import DecodeError

KeyId = Union[int, str, None]


@dataclass(frozen=True)
class Key:
    """An entity key.

    Attributes
    ----------
    kind : str
        Entity kind.
    id : int | str | None
        Numeric id, string name, or ``None`` for an incomplete key whose id
        the datastore assigns on insert.
    parent : Key, optional
        Ancestor key.
    namespace : str, optional
        Namespace (multitenancy). Parents always share the child's namespace.

    Examples
    --------
    >>> user = Key("user", "ada")
    >>> post = user.child("post", 10)
    >>> post.path
    [('user', 'ada'), ('post', 10)]
    """

    kind: str
    id: KeyId = None
    parent: Optional["Key"] = None
    namespace: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, (int, str, type(None))):
            raise TypeError(f"Key id must be int, str or None, got {type(self.id).__name__}")
        if not self.kind:
            raise ValueError("Key kind cannot be empty")
        # The default namespace travels as "" on the wire and is None here.
        object.__setattr__(self, "namespace", self.namespace or None)
        if self.parent is not None:
            if self.namespace is None and self.parent.namespace is not None:
                object.__setattr__(self, "namespace", self.parent.namespace)
            elif self.parent.namespace != self.namespace:
                object.__setattr__(self, "parent", replace(self.parent, namespace=self.namespace))

    def is_incomplete(self) -> bool:
        return self.id is None

    def child(self, kind: str, id: KeyId = None) -> "Key":
        """Return a key for ``kind``/``id`` with this key as its parent."""
        return Key(kind, id, parent=self, namespace=self.namespace)

    @property
    def path(self) -> list[tuple[str, KeyId]]:
        """Path elements from the root ancestor down to this key."""
        elements = []
        key: Optional[Key] = self
        while key is not None:
            elements.append((key.kind, key.id))
            key = key.parent
        elements.reverse()
        return elements

    def to_wire(self, project: str) -> dict:
        path = []
        for kind, id_ in self.path:
            element: dict = {"kind": kind}
            if isinstance(id_, int):
                element["id"] = str(id_)
            elif isinstance(id_, str):
                element["name"] = id_
            path.append(element)
        return {
            "partitionId": {"projectId": project, "namespaceId": self.namespace or ""},
            "path": path,
        }

    @classmethod
    def from_wire(cls, data: dict) -> "Key":
        namespace = (data.get("partitionId") or {}).get("namespaceId") or None
        path = require(data, "path", what="key")
        if not path:
            raise DecodeError("key has an empty path")

        key: Optional[Key] = None
        for element in path:
            kind = require(element, "kind", what="key path element")
            if "id" in element:
                try:
                    id_: KeyId = int(element["id"])
                except (TypeError, ValueError) as e:
                    raise DecodeError(f"invalid key id {element['id']!r}") from e
            else:
                id_ = element.get("name")
            key = cls(kind, id_, parent=key, namespace=namespace)
        return key  # type: ignore[return-value]


__all__ = ["Key", "KeyId"]
