"""Per-kind index exclusion rules loaded from YAML.

The file lists, per kind, the properties that must not be indexed::

    kind:
      customer:
        property:
          email: true
          lastName: true

Properties are indexed unless listed with a true value. The file path comes
from ``ClientConfig.index_excluded`` or the ``INDEX_EXCLUDED`` environment
variable; when neither is set (or the file does not exist) nothing is excluded.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from pdum.cloud.types.constants import INDEX_EXCLUDED_ENV

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexExcluded:
    """Excluded property names keyed by kind."""

    kinds: dict[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "IndexExcluded":
        """Load rules from ``path`` (or ``$INDEX_EXCLUDED``).

        Raises
        ------
        ValueError
            If the file exists but does not follow the expected layout.
        """
        path = path or os.getenv(INDEX_EXCLUDED_ENV)
        if not path:
            return cls()

        file_path = Path(path).expanduser()
        if not file_path.exists():
            logger.warning("Index exclusion file %s not found; indexing every property", file_path)
            return cls()

        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data, source=str(file_path))

    @classmethod
    def from_dict(cls, data: dict, *, source: str = "<dict>") -> "IndexExcluded":
        if not isinstance(data, dict) or set(data) - {"kind"}:
            raise ValueError(f"{source}: expected a single top-level `kind` mapping")

        kinds: dict[str, frozenset[str]] = {}
        for kind, rules in (data.get("kind") or {}).items():
            if not isinstance(rules, dict) or set(rules) - {"property"}:
                raise ValueError(f"{source}: kind `{kind}` must contain only a `property` mapping")
            properties = rules.get("property") or {}
            kinds[kind] = frozenset(name for name, excluded in properties.items() if excluded)
        return cls(kinds)

    def for_kind(self, kind: str) -> frozenset[str]:
        return self.kinds.get(kind, frozenset())

    def is_excluded(self, kind: str, property_name: str) -> bool:
        return property_name in self.for_kind(kind)


__all__ = ["IndexExcluded"]
