"""
Property schema registry.

A record type declares its persistent fields as `Column` class attributes and
its table in `table_name`. The first time the type is used, this module
collects those declarations, adds the virtual columns its configuration
implies, and freezes the result into a `PropertySchema` that is shared for the
rest of the process.

Virtual columns, in order:
- the primary key (`id`, or `phid` when PHIDs are the primary key)
- `version` when optimistic locking is on
- `dateCreated` / `dateModified` when timestamps are on
- `phid` when auxiliary PHIDs are on and the primary key is not already a PHID
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from rowstore.dao.accessors import AccessorTable, normalize
from rowstore.dao.configuration import IDS_PHID, resolve_configuration
from rowstore.dao.registry import TypeRegistry

VERSION_FIELD = "version"
DATE_CREATED_FIELD = "dateCreated"
DATE_MODIFIED_FIELD = "dateModified"
PHID_FIELD = "phid"


class Column:
    """
    Declare a persistent field on a record type.

    Parameters
    ----------
    default : Any
        Initial value for new records. Mutable defaults are deep-copied per
        instance.
    default_factory : callable, optional
        Called with no arguments to produce the initial value instead.
    """

    def __init__(self, default: Any = None, *, default_factory: Optional[Callable[[], Any]] = None) -> None:
        self.default = default
        self.default_factory = default_factory
        self.name: str = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def initial(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        return copy.deepcopy(self.default)

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        return instance._values.get(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance._values[self.name] = value

    def __repr__(self) -> str:
        return f"Column({self.name!r})"


@dataclass(frozen=True)
class PropertySchema:
    """
    Immutable description of one record type's storage.

    Attributes
    ----------
    table_name : str | None
        Backing table, as declared on the type.
    id_key : str | None
        Primary key column, or None when the type has no single-part key.
    columns : Mapping[str, Column]
        Declared columns by canonical name, in declaration order.
    lookup : Mapping[str, str]
        Normalized name -> canonical name, including virtual columns.
    accessors : AccessorTable
        Accessor entries for dynamic get/set calls.
    """

    table_name: Optional[str]
    id_key: Optional[str]
    columns: Mapping[str, Column]
    lookup: Mapping[str, str]
    accessors: AccessorTable

    @property
    def canonical_names(self) -> Tuple[str, ...]:
        return tuple(self.lookup.values())

    def resolve(self, name: str) -> Optional[str]:
        """Case-insensitive lookup of a field name; None when absent."""
        return self.lookup.get(normalize(name))

    def __contains__(self, name: str) -> bool:
        return normalize(name) in self.lookup


def declared_columns(record_type: type) -> Dict[str, Column]:
    """Collect Column declarations across the MRO, base classes first."""
    columns: Dict[str, Column] = {}
    for klass in reversed(record_type.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, Column):
                columns[name] = value
    return columns


def _build_schema(record_type: type) -> PropertySchema:
    config = resolve_configuration(record_type)
    columns = declared_columns(record_type)
    id_key: Optional[str] = record_type.id_key()

    lookup: Dict[str, str] = {normalize(name): name for name in columns}
    if id_key and normalize(id_key) not in lookup:
        lookup[normalize(id_key)] = id_key
    if config.optimistic_locks:
        lookup[normalize(VERSION_FIELD)] = VERSION_FIELD
    if config.timestamps:
        lookup[normalize(DATE_CREATED_FIELD)] = DATE_CREATED_FIELD
        lookup[normalize(DATE_MODIFIED_FIELD)] = DATE_MODIFIED_FIELD
    if config.id_mechanism != IDS_PHID and config.aux_phid:
        lookup[normalize(PHID_FIELD)] = PHID_FIELD

    return PropertySchema(
        table_name=getattr(record_type, "table_name", None),
        id_key=id_key,
        columns=MappingProxyType(columns),
        lookup=MappingProxyType(lookup),
        accessors=AccessorTable(lookup.values(), id_key),
    )


_schemas: TypeRegistry[PropertySchema] = TypeRegistry(_build_schema)


def schema_for(record_type: type) -> PropertySchema:
    """Return the cached property schema for a record type."""
    return _schemas.get(record_type)


__all__ = [
    "Column",
    "DATE_CREATED_FIELD",
    "DATE_MODIFIED_FIELD",
    "PHID_FIELD",
    "PropertySchema",
    "VERSION_FIELD",
    "declared_columns",
    "schema_for",
]
