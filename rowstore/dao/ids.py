"""
Primary key allocation strategies.

Each record type picks one through its `id_mechanism` option:

- autoincrement: the key column is left out of INSERTs and the id the
  database generated is written back afterwards
- phid: a PHID is generated by the record type before the first write
- manual: the caller supplies the key; nothing is allocated

Allocators also decide whether `save()` should INSERT or UPDATE.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any, Callable, Dict, List, MutableMapping, Optional, Protocol, runtime_checkable

from rowstore.dao.configuration import IDS_AUTOINCREMENT, IDS_MANUAL, IDS_PHID
from rowstore.dao.schema import VERSION_FIELD
from rowstore.errors import ConfigurationError

if TYPE_CHECKING:
    from rowstore.dao.record import Record
    from rowstore.infrastructure.connection import Connection


@runtime_checkable
class IdAllocator(Protocol):
    """
    Common interface for key allocation strategies.

    Attributes
    ----------
    name : str
        The `id_mechanism` value that selects this strategy.
    """

    name: str

    def prepare_insert(self, record: "Record", data: MutableMapping[str, Any]) -> None:
        """Adjust the INSERT payload (and the record) before the write."""
        ...

    def returning_column(self, record: "Record") -> Optional[str]:
        """Column the INSERT should hand back as the generated id, if any."""
        ...

    def after_insert(self, record: "Record", connection: "Connection") -> None:
        """Write back anything the database assigned."""
        ...

    def should_insert(self, record: "Record") -> bool:
        """Whether `save()` on this record is an INSERT."""
        ...


class AbstractIdAllocator(abc.ABC):
    """
    ABC helper with no-op defaults; subclasses set `name`.
    """

    name: str

    def prepare_insert(self, record: "Record", data: MutableMapping[str, Any]) -> None:
        return None

    def returning_column(self, record: "Record") -> Optional[str]:
        return None

    def after_insert(self, record: "Record", connection: "Connection") -> None:
        return None

    @abc.abstractmethod
    def should_insert(self, record: "Record") -> bool:  # pragma: no cover - interface only
        raise NotImplementedError


class AutoincrementAllocator(AbstractIdAllocator):
    """Let the database assign the key."""

    name = IDS_AUTOINCREMENT

    def prepare_insert(self, record: "Record", data: MutableMapping[str, Any]) -> None:
        data.pop(record.id_key_for_use(), None)

    def returning_column(self, record: "Record") -> Optional[str]:
        return record.id_key_for_use()

    def after_insert(self, record: "Record", connection: "Connection") -> None:
        record.set_id(connection.last_insert_id())

    def should_insert(self, record: "Record") -> bool:
        return not record.get_id()


class PhidAllocator(AbstractIdAllocator):
    """Use a record-generated PHID as the key; never regenerate an existing one."""

    name = IDS_PHID

    def prepare_insert(self, record: "Record", data: MutableMapping[str, Any]) -> None:
        id_key = record.id_key_for_use()
        if not data.get(id_key):
            phid = record.generate_phid()
            record.set_id(phid)
            data[id_key] = phid

    def should_insert(self, record: "Record") -> bool:
        return not record.get_id()


class ManualAllocator(AbstractIdAllocator):
    """
    The caller owns the key.

    Without optimistic locking there is no reliable way to tell a new record
    from a persisted one, so the type must override `should_insert_when_saved`.
    """

    name = IDS_MANUAL

    def should_insert(self, record: "Record") -> bool:
        if not record.get_config_option("optimistic_locks"):
            raise ConfigurationError(
                f"{type(record).__name__} uses manual IDs without optimistic locks; "
                "override should_insert_when_saved() to decide between insert and update."
            )
        # A committed version means the row has been written before.
        has_version = record.get(VERSION_FIELD) is not None
        return not (record.get_id() and has_version)


def _allocator_factories() -> Dict[str, Callable[[], AbstractIdAllocator]]:
    """Registry of available allocators."""
    return {
        IDS_AUTOINCREMENT: AutoincrementAllocator,
        IDS_PHID: PhidAllocator,
        IDS_MANUAL: ManualAllocator,
    }


def available_allocators() -> List[str]:
    """List available id mechanism names."""
    return sorted(_allocator_factories().keys())


def resolve_allocator(mechanism: str) -> IdAllocator:
    factories = _allocator_factories()
    if mechanism not in factories:
        raise ConfigurationError(
            f"Unknown id mechanism '{mechanism}'. Available: {', '.join(available_allocators())}"
        )
    return factories[mechanism]()


__all__ = [
    "AbstractIdAllocator",
    "AutoincrementAllocator",
    "IdAllocator",
    "ManualAllocator",
    "PhidAllocator",
    "available_allocators",
    "resolve_allocator",
]
