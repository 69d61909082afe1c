"""
Type-keyed, build-once registry.

Configuration and property schemas are derived from a record type once and
then shared read-only for the life of the process. Entries are never evicted.
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, Generic, TypeVar

T = TypeVar("T")


class TypeRegistry(Generic[T]):
    """
    Memoize one value per type.

    Lookups of an existing entry take no lock. The first build for a type is
    guarded, so concurrent first access still produces a single canonical
    value.
    """

    def __init__(self, builder: Callable[[type], T]) -> None:
        self._builder = builder
        self._entries: Dict[type, T] = {}
        self._lock = threading.Lock()

    def get(self, record_type: type) -> T:
        try:
            return self._entries[record_type]
        except KeyError:
            pass
        with self._lock:
            if record_type not in self._entries:
                self._entries[record_type] = self._builder(record_type)
            return self._entries[record_type]

    def __contains__(self, record_type: type) -> bool:
        return record_type in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["TypeRegistry"]
