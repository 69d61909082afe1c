"""
DAO package for rowstore.

Re-exports the record base class and the pieces record types declare with,
so downstream code can import from `rowstore.dao` directly.
"""

from rowstore.dao.configuration import (
    CONFIG_AUX_PHID,
    CONFIG_IDS,
    CONFIG_OPTIMISTIC_LOCKS,
    CONFIG_SERIALIZATION,
    CONFIG_TIMESTAMPS,
    IDS_AUTOINCREMENT,
    IDS_MANUAL,
    IDS_PHID,
    SERIALIZATION_JSON,
    SERIALIZATION_NONE,
    SERIALIZATION_PICKLE,
    DaoConfiguration,
    resolve_configuration,
)
from rowstore.dao.query import QueryBuilder
from rowstore.dao.record import Record
from rowstore.dao.schema import Column, PropertySchema, schema_for

__all__ = [
    # Configuration
    "CONFIG_AUX_PHID",
    "CONFIG_IDS",
    "CONFIG_OPTIMISTIC_LOCKS",
    "CONFIG_SERIALIZATION",
    "CONFIG_TIMESTAMPS",
    "IDS_AUTOINCREMENT",
    "IDS_MANUAL",
    "IDS_PHID",
    "SERIALIZATION_JSON",
    "SERIALIZATION_NONE",
    "SERIALIZATION_PICKLE",
    "DaoConfiguration",
    "resolve_configuration",
    # Schema
    "Column",
    "PropertySchema",
    "schema_for",
    # Engine
    "QueryBuilder",
    "Record",
]
