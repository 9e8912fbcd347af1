"""Conversion between Python values and Datastore JSON values.

=====================  ==================
Python                 Datastore
=====================  ==================
``None``               ``nullValue``
``bool``               ``booleanValue``
``int``                ``integerValue``
``float``              ``doubleValue``
``datetime``           ``timestampValue``
:class:`Key`           ``keyValue``
``str``                ``stringValue``
``bytes``              ``blobValue``
:class:`GeoPoint`      ``geoPointValue``
``dict``               ``entityValue``
``list`` / ``tuple``   ``arrayValue``
=====================  ==================
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any

from pdum.cloud._helpers import b64decode, b64encode, format_timestamp, parse_timestamp
from pdum.cloud.types.exceptions import DecodeError

from .key import Key


@dataclass(frozen=True)
class GeoPoint:
    """A point on Earth (degrees)."""

    latitude: float
    longitude: float


def encode_value(value: Any, project: str, *, exclude_from_indexes: bool = False) -> dict:
    """Encode a Python value as a Datastore JSON value.

    Naive datetimes are taken to be UTC; they decode as aware UTC datetimes,
    so compare against ``value.replace(tzinfo=timezone.utc)`` after a round trip.

    Raises
    ------
    TypeError
        If the value has no Datastore representation.
    """
    if isinstance(value, (list, tuple)):
        # Arrays carry the exclusion flag on their elements, never on themselves.
        return {
            "arrayValue": {
                "values": [encode_value(v, project, exclude_from_indexes=exclude_from_indexes) for v in value]
            }
        }

    if value is None:
        wire: dict = {"nullValue": None}
    elif isinstance(value, bool):
        wire = {"booleanValue": value}
    elif isinstance(value, int):
        wire = {"integerValue": str(value)}
    elif isinstance(value, float):
        wire = {"doubleValue": value}
    elif isinstance(value, dt.datetime):
        wire = {"timestampValue": format_timestamp(value)}
    elif isinstance(value, Key):
        wire = {"keyValue": value.to_wire(project)}
    elif isinstance(value, str):
        wire = {"stringValue": value}
    elif isinstance(value, (bytes, bytearray)):
        wire = {"blobValue": b64encode(bytes(value))}
    elif isinstance(value, GeoPoint):
        wire = {"geoPointValue": {"latitude": value.latitude, "longitude": value.longitude}}
    elif isinstance(value, dict):
        wire = {"entityValue": {"properties": encode_properties(value, project)}}
    else:
        raise TypeError(f"Cannot store value of type {type(value).__name__} in Datastore")

    if exclude_from_indexes:
        wire["excludeFromIndexes"] = True
    return wire


def encode_properties(properties: dict[str, Any], project: str, excluded: frozenset[str] = frozenset()) -> dict:
    return {
        name: encode_value(value, project, exclude_from_indexes=name in excluded)
        for name, value in properties.items()
    }


def decode_value(wire: dict) -> Any:
    """Decode a Datastore JSON value into a Python value.

    Raises
    ------
    DecodeError
        If the JSON does not hold a known value type.
    """
    if not isinstance(wire, dict):
        raise DecodeError(f"expected a value object, got {type(wire).__name__}")

    if "nullValue" in wire:
        return None
    if "booleanValue" in wire:
        return bool(wire["booleanValue"])
    if "integerValue" in wire:
        try:
            return int(wire["integerValue"])
        except (TypeError, ValueError) as e:
            raise DecodeError(f"invalid integerValue {wire['integerValue']!r}") from e
    if "doubleValue" in wire:
        # Non-finite doubles arrive as strings ("NaN", "Infinity").
        return float(wire["doubleValue"])
    if "timestampValue" in wire:
        return parse_timestamp(wire["timestampValue"])
    if "keyValue" in wire:
        return Key.from_wire(wire["keyValue"])
    if "stringValue" in wire:
        return wire["stringValue"]
    if "blobValue" in wire:
        return b64decode(wire["blobValue"])
    if "geoPointValue" in wire:
        point = wire["geoPointValue"]
        return GeoPoint(float(point.get("latitude", 0.0)), float(point.get("longitude", 0.0)))
    if "entityValue" in wire:
        return decode_properties(wire["entityValue"].get("properties", {}))
    if "arrayValue" in wire:
        return [decode_value(v) for v in wire["arrayValue"].get("values", [])]

    raise DecodeError(f"unknown datastore value: {sorted(wire)}")


def decode_properties(properties: dict) -> dict[str, Any]:
    return {name: decode_value(value) for name, value in properties.items()}


def type_name(value: Any) -> str:
    """Datastore type name of a Python value (used in conversion errors)."""
    if value is None:
        return "null"
    for cls, name in (
        (bool, "bool"),
        (int, "integer"),
        (float, "double"),
        (dt.datetime, "timestamp"),
        (Key, "key"),
        (str, "string"),
        ((bytes, bytearray), "blob"),
        (GeoPoint, "geopoint"),
        (dict, "entity"),
        ((list, tuple), "array"),
    ):
        if isinstance(value, cls):
            return name
    return type(value).__name__


__all__ = ["GeoPoint", "decode_properties", "decode_value", "encode_properties", "encode_value", "type_name"]
