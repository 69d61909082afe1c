"""
Per-record-type DAO configuration.

A record type declares overrides in its `configuration()` classmethod; they
are merged over the engine defaults and frozen into a `DaoConfiguration`
the first time the type is used. Unknown option keys are dropped rather than
rejected. The ID mechanism and serialization format names are deliberately
left as plain strings and validated where they are used.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rowstore.dao.registry import TypeRegistry

CONFIG_OPTIMISTIC_LOCKS = "optimistic_locks"
CONFIG_IDS = "id_mechanism"
CONFIG_TIMESTAMPS = "timestamps"
CONFIG_AUX_PHID = "aux_phid"
CONFIG_SERIALIZATION = "serialization"

IDS_AUTOINCREMENT = "autoincrement"
IDS_PHID = "phid"
IDS_MANUAL = "manual"

SERIALIZATION_NONE = "none"
SERIALIZATION_JSON = "json"
SERIALIZATION_PICKLE = "pickle"


class DaoConfiguration(BaseModel):
    """
    Resolved behavior flags for one record type.
    """

    optimistic_locks: bool = Field(False, description="Track a version column and pin updates to it.")
    id_mechanism: str = Field(IDS_AUTOINCREMENT, description="How primary keys are assigned.")
    timestamps: bool = Field(True, description="Maintain dateCreated/dateModified.")
    aux_phid: bool = Field(False, description="Carry a PHID alongside a non-PHID primary key.")
    serialization: Mapping[str, str] = Field(
        default_factory=dict,
        validate_default=True,
        description="Column name -> serialization format, read-only once resolved.",
    )

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("serialization", mode="after")
    @classmethod
    def freeze_serialization(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    def option(self, name: str) -> Any:
        """Return an option by key, or None when the key is not a known option."""
        if name not in type(self).model_fields:
            return None
        return getattr(self, name)


def _build_configuration(record_type: type) -> DaoConfiguration:
    declared: Optional[Dict[str, Any]] = record_type.configuration()
    return DaoConfiguration(**(declared or {}))


_configurations: TypeRegistry[DaoConfiguration] = TypeRegistry(_build_configuration)


def resolve_configuration(record_type: type) -> DaoConfiguration:
    """
    Return the cached configuration for a record type, building it on first use.
    """
    return _configurations.get(record_type)


__all__ = [
    "CONFIG_AUX_PHID",
    "CONFIG_IDS",
    "CONFIG_OPTIMISTIC_LOCKS",
    "CONFIG_SERIALIZATION",
    "CONFIG_TIMESTAMPS",
    "DaoConfiguration",
    "IDS_AUTOINCREMENT",
    "IDS_MANUAL",
    "IDS_PHID",
    "SERIALIZATION_JSON",
    "SERIALIZATION_NONE",
    "SERIALIZATION_PICKLE",
    "resolve_configuration",
]
