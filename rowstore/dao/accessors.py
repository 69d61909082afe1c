"""
Field-access table behind `Record.get`/`Record.set` and `getXxx()`/`setXxx(v)`.

Built once per record type alongside its property schema. Every name is
normalized (lower-cased, underscores dropped) so `getDateCreated`,
`get_date_created` and `get("datecreated")` land on the same entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, MutableMapping, Optional, Tuple

GETTER = "get"
SETTER = "set"


def normalize(name: str) -> str:
    """Case-fold a field or accessor name into its lookup key."""
    return name.replace("_", "").lower()


@dataclass(frozen=True)
class FieldAccessor:
    """Reads and writes one canonical field in a record's value map."""

    name: str

    def read(self, values: MutableMapping[str, Any]) -> Any:
        return values.get(self.name)

    def write(self, values: MutableMapping[str, Any], value: Any) -> None:
        values[self.name] = value


class AccessorTable:
    """
    Normalized name -> accessor, plus accessor method name -> (kind, accessor).

    The symbolic name "id" always points at the configured primary key, so
    `setID(...)` works whatever the key column is actually called.
    """

    def __init__(self, canonical_names: Iterable[str], id_key: Optional[str]) -> None:
        self._fields: Dict[str, FieldAccessor] = {
            normalize(name): FieldAccessor(name) for name in canonical_names
        }
        if id_key:
            self._fields["id"] = self._fields.get(normalize(id_key), FieldAccessor(id_key))

        self._methods: Dict[str, Tuple[str, FieldAccessor]] = {}
        for key, accessor in self._fields.items():
            self._methods[GETTER + key] = (GETTER, accessor)
            self._methods[SETTER + key] = (SETTER, accessor)

    def field(self, name: str) -> Optional[FieldAccessor]:
        return self._fields.get(normalize(name))

    def method(self, method_name: str) -> Optional[Tuple[str, FieldAccessor]]:
        """Resolve an accessor method name such as `getVersion` or `set_name`."""
        if not method_name.startswith((GETTER, SETTER)):
            return None
        return self._methods.get(normalize(method_name))


__all__ = ["AccessorTable", "FieldAccessor", "GETTER", "SETTER", "normalize"]
