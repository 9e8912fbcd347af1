"""Datastore queries."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional

from .key import Key
from .value import encode_value

OPERATORS: dict[str, str] = {
    "=": "EQUAL",
    "==": "EQUAL",
    ">": "GREATER_THAN",
    "<": "LESS_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "<=": "LESS_THAN_OR_EQUAL",
    "!=": "NOT_EQUAL",
    "in": "IN",
    "not in": "NOT_IN",
    "has ancestor": "HAS_ANCESTOR",
}


def _operator(op: str) -> str:
    """Accept both Python-ish spellings (``"not in"``) and wire names (``"NOT_IN"``)."""
    name = op.lower().replace("_", " ")
    if name in OPERATORS:
        return OPERATORS[name]
    if op.upper() in OPERATORS.values():
        return op.upper()
    raise ValueError(f"Unknown filter operator {op!r}; expected one of {', '.join(OPERATORS)}")


@dataclass(frozen=True)
class Filter:
    """A property filter such as ``Filter("age", ">=", 18)``."""

    property: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        _operator(self.op)

    def to_wire(self, project: str) -> dict:
        return {
            "propertyFilter": {
                "property": {"name": self.property},
                "op": _operator(self.op),
                "value": encode_value(self.value, project),
            }
        }


@dataclass(frozen=True)
class Order:
    """Result ordering on one property."""

    property: str
    descending: bool = False

    def to_wire(self) -> dict:
        return {
            "property": {"name": self.property},
            "direction": "DESCENDING" if self.descending else "ASCENDING",
        }


@dataclass(frozen=True)
class Query:
    """A query over one kind.

    Filters are combined with AND; orderings apply in the order given.
    Builder methods return modified copies::

        Query("user").filter("age", ">", 10).order_by("age", descending=True).with_limit(25)

    Attributes
    ----------
    kind : str
        Entity kind to query.
    namespace : str, optional
        Namespace to query in.
    filters : tuple[Filter, ...]
        Property filters.
    orders : tuple[Order, ...]
        Result orderings.
    projection : tuple[str, ...]
        Only return these properties.
    distinct_on : tuple[str, ...]
        De-duplicate results on these properties.
    keys_only : bool
        Return keys with empty properties. Ignored for projection queries.
    eventual : bool
        Accept eventually consistent results (ancestor queries only).
    offset : int
        Results to skip.
    limit : int, optional
        Maximum number of results.
    start_cursor : str, optional
        Resume after a previous query's cursor.
    """

    kind: str
    namespace: Optional[str] = None
    filters: tuple[Filter, ...] = field(default_factory=tuple)
    orders: tuple[Order, ...] = field(default_factory=tuple)
    projection: tuple[str, ...] = field(default_factory=tuple)
    distinct_on: tuple[str, ...] = field(default_factory=tuple)
    keys_only: bool = False
    eventual: bool = False
    offset: int = 0
    limit: Optional[int] = None
    start_cursor: Optional[str] = None

    def filter(self, property: str, op: str, value: Any) -> "Query":
        return dataclasses.replace(self, filters=self.filters + (Filter(property, op, value),))

    def ancestor(self, key: Key) -> "Query":
        return dataclasses.replace(self, filters=self.filters + (Filter("__key__", "has ancestor", key),))

    def order_by(self, property: str, *, descending: bool = False) -> "Query":
        return dataclasses.replace(self, orders=self.orders + (Order(property, descending),))

    def project(self, *properties: str) -> "Query":
        return dataclasses.replace(self, projection=tuple(properties))

    def distinct(self, *properties: str) -> "Query":
        return dataclasses.replace(self, distinct_on=tuple(properties))

    def with_limit(self, limit: int) -> "Query":
        return dataclasses.replace(self, limit=limit)

    def with_offset(self, offset: int) -> "Query":
        return dataclasses.replace(self, offset=offset)

    def to_wire(
        self,
        project: str,
        *,
        cursor: Optional[str] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> dict:
        """Build the ``query`` object of a ``runQuery`` request.

        ``cursor``, ``offset`` and ``limit`` override the query's own values
        when resuming a paged query.
        """
        wire: dict = {"kind": [{"name": self.kind}]}

        if self.projection:
            wire["projection"] = [{"property": {"name": name}} for name in self.projection]
        elif self.keys_only:
            wire["projection"] = [{"property": {"name": "__key__"}}]

        if len(self.filters) == 1:
            wire["filter"] = self.filters[0].to_wire(project)
        elif self.filters:
            wire["filter"] = {
                "compositeFilter": {"op": "AND", "filters": [f.to_wire(project) for f in self.filters]}
            }

        if self.orders:
            wire["order"] = [o.to_wire() for o in self.orders]
        if self.distinct_on:
            wire["distinctOn"] = [{"name": name} for name in self.distinct_on]

        start = cursor or self.start_cursor
        if start:
            wire["startCursor"] = start
        offset = self.offset if offset is None else offset
        if offset:
            wire["offset"] = offset
        limit = self.limit if limit is None else limit
        if limit is not None:
            wire["limit"] = limit
        return wire


__all__ = ["Filter", "OPERATORS", "Order", "Query"]
