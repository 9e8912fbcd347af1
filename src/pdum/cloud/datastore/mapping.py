"""Generic mapping between Python classes and Datastore values.

Decorate a dataclass (or an ``Enum``) with :func:`model` to control how it is
stored; :func:`to_value` and :func:`from_value` then convert in both
directions::

    @model(rename_all="camelCase")
    @dataclass
    class User:
        first_name: str
        age: int
        email: str = field(default="", metadata={"datastore": "mail"})

    to_value(User("Ada", 36))  # {"firstName": "Ada", "age": 36, "mail": ""}

Dataclasses become embedded entities, enum members become strings, lists and
dicts are converted element-wise, and everything else is passed through as a
plain Datastore value.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import re
import types
import typing
from enum import Enum
from typing import Any, Callable, Optional, TypeVar, Union

from pdum.cloud.types.exceptions import DecodeError

from .key import Key
from .value import GeoPoint, type_name

T = TypeVar("T")

_RENAME_ATTR = "__datastore_rename_all__"
_FIELD_RENAME = "datastore"
_WORD = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z0-9]+")


def _words(identifier: str) -> list[str]:
    words = []
    for part in identifier.split("_"):
        if not part:
            continue
        if part.islower() or part.isupper():
            words.append(part.lower())
        else:
            words.extend(w.lower() for w in _WORD.findall(part))
    return words


CASINGS: dict[str, Callable[[list[str]], str]] = {
    "lowercase": lambda w: "".join(w),
    "UPPERCASE": lambda w: "".join(w).upper(),
    "PascalCase": lambda w: "".join(x.capitalize() for x in w),
    "camelCase": lambda w: (w[0] + "".join(x.capitalize() for x in w[1:])) if w else "",
    "snake_case": lambda w: "_".join(w),
    "SCREAMING_SNAKE_CASE": lambda w: "_".join(w).upper(),
    "kebab-case": lambda w: "-".join(w),
    "SCREAMING-KEBAB-CASE": lambda w: "-".join(w).upper(),
}


def rename(identifier: str, rule: str) -> str:
    """Apply a casing rule to a Python identifier.

    >>> rename("are_we_there_yet", "SCREAMING-KEBAB-CASE")
    'ARE-WE-THERE-YET'
    >>> rename("TrickyOne", "snake_case")
    'tricky_one'
    """
    try:
        return CASINGS[rule](_words(identifier))
    except KeyError:
        raise ValueError(f"Unknown casing rule {rule!r}; expected one of {', '.join(CASINGS)}") from None


def model(cls: Optional[type] = None, *, rename_all: str = "camelCase"):
    """Mark a dataclass or Enum as storable, with a casing rule for its names."""
    if rename_all not in CASINGS:
        raise ValueError(f"Unknown casing rule {rename_all!r}; expected one of {', '.join(CASINGS)}")

    def wrap(target: type) -> type:
        if not (dataclasses.is_dataclass(target) or issubclass(target, Enum)):
            raise TypeError(f"@model expects a dataclass or Enum, got {target.__name__}")
        setattr(target, _RENAME_ATTR, rename_all)
        return target

    return wrap if cls is None else wrap(cls)


def _rule(cls: type) -> str:
    return getattr(cls, _RENAME_ATTR, "camelCase")


def _field_name(cls: type, f: dataclasses.Field) -> str:
    return f.metadata.get(_FIELD_RENAME) or rename(f.name, _rule(cls))


def _member_name(cls: type, member: Enum) -> str:
    return rename(member.name, _rule(cls))


def to_value(obj: Any) -> Any:
    """Convert an object into a Datastore-compatible value."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        cls = type(obj)
        return {_field_name(cls, f): to_value(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return _member_name(type(obj), obj)
    if isinstance(obj, (list, tuple)):
        return [to_value(v) for v in obj]
    if isinstance(obj, dict):
        return {k: to_value(v) for k, v in obj.items()}
    return obj


def from_value(cls: Any, value: Any) -> Any:
    """Rebuild an instance of ``cls`` from a Datastore value.

    ``cls`` may be a dataclass, an Enum, a primitive type, or a typing
    construct over those (``Optional[X]``, ``list[X]``, ``dict[str, X]``).

    Raises
    ------
    DecodeError
        If a property is missing or has the wrong type.
    """
    origin = typing.get_origin(cls)

    if cls is Any:
        return value
    if origin in (Union, types.UnionType):
        args = typing.get_args(cls)
        if value is None and type(None) in args:
            return None
        errors = []
        for arg in args:
            if arg is type(None):
                continue
            try:
                return from_value(arg, value)
            except DecodeError as e:
                errors.append(str(e))
        raise DecodeError("; ".join(errors) or f"cannot convert {type_name(value)}")
    if origin in (list, tuple):
        _expect(value, (list, tuple), "array")
        args = typing.get_args(cls)
        items = [from_value(args[0] if args else Any, v) for v in value]
        return items if origin is list else tuple(items)
    if origin is dict:
        _expect(value, dict, "entity")
        args = typing.get_args(cls)
        item_type = args[1] if len(args) == 2 else Any
        return {k: from_value(item_type, v) for k, v in value.items()}

    if isinstance(cls, type) and dataclasses.is_dataclass(cls):
        return _from_entity(cls, value)
    if isinstance(cls, type) and issubclass(cls, Enum):
        _expect(value, str, "string")
        for member in cls:
            if _member_name(cls, member) == value:
                return member
        raise DecodeError(f"`{value}` is not a valid {cls.__name__}")

    if cls is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if cls in (bool, int, float, str, bytes, dt.datetime, Key, GeoPoint, list, dict):
        _expect(value, cls, cls.__name__)
        return value
    return value


def _from_entity(cls: type, value: Any) -> Any:
    _expect(value, dict, "entity")
    hints = typing.get_type_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        name = _field_name(cls, f)
        if name not in value:
            if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
                continue
            raise DecodeError(f"expected property `{name}` was missing")
        try:
            kwargs[f.name] = from_value(hints.get(f.name, Any), value[name])
        except DecodeError as e:
            raise DecodeError(f"property `{name}`: {e}") from e
    return cls(**kwargs)


def _expect(value: Any, expected: Union[type, tuple[type, ...]], name: str) -> None:
    if isinstance(value, bool) and expected in (int, float):
        raise DecodeError(f"expected property type `{name}`, got `bool`")
    if not isinstance(value, expected):
        raise DecodeError(f"expected property type `{name}`, got `{type_name(value)}`")


__all__ = ["CASINGS", "from_value", "model", "rename", "to_value"]
