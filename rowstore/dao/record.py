"""
Record base class: the persistence engine.

Subclass `Record`, declare columns, name the table and supply a connection:

    class Note(Record):
        table_name = "note"

        title = Column()
        body = Column(default="")

        @classmethod
        def configuration(cls):
            return {**super().configuration(), "optimistic_locks": True}

        def establish_connection(self, mode):
            return connect_sqlite("notes.db")

    note = Note(title="hello")
    note.save()                    # INSERT; note.id is now set, version is 0
    note.body = "world"
    note.save()                    # UPDATE pinned to version 0; version is 1
    same = Note().load(note.id)

Each public operation issues one statement. Concurrent writers to the same
row are detected, not prevented: with optimistic locks on, an UPDATE that
matches no row raises MissingRecordError and the caller decides whether to
reload and retry.
"""

from __future__ import annotations

import copy
import time
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from rowstore.dao.accessors import GETTER
from rowstore.dao.configuration import (
    CONFIG_AUX_PHID,
    CONFIG_IDS,
    CONFIG_OPTIMISTIC_LOCKS,
    CONFIG_SERIALIZATION,
    CONFIG_TIMESTAMPS,
    IDS_PHID,
    DaoConfiguration,
    resolve_configuration,
)
from rowstore.dao.ids import IdAllocator, resolve_allocator
from rowstore.dao.query import INSERT, REPLACE, QueryBuilder, lock_mode
from rowstore.dao.schema import (
    DATE_CREATED_FIELD,
    DATE_MODIFIED_FIELD,
    PHID_FIELD,
    VERSION_FIELD,
    PropertySchema,
    schema_for,
)
from rowstore.dao.serialization import decode_columns, encode_columns
from rowstore.errors import (
    ArgumentError,
    CardinalityError,
    ConfigurationError,
    MissingRecordError,
    StructuralError,
)
from rowstore.infrastructure.connection import Connection, Row
from rowstore.utils.logging import get_logger

log = get_logger(__name__)

CONNECTION_MODES = ("r", "w")


def _coerce_id(value: Any) -> int:
    """Accept a positive int (or a string of digits) as a row id."""
    if isinstance(value, bool):
        raise ArgumentError(f"Bogus ID provided to load(): {value!r}")
    if isinstance(value, int):
        ident = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        ident = int(value.strip())
    else:
        raise ArgumentError(f"Bogus ID provided to load(): {value!r}")
    if ident <= 0:
        raise ArgumentError(f"Bogus ID provided to load(): {value!r}")
    return ident


class Record:
    """
    A row-mapped object.

    Subclasses provide:
    - `table_name` and `Column` declarations
    - `establish_connection(mode)`
    - optionally `configuration()`, `transient_fields()`, `generate_phid()`,
      `id_key()` and any of the lifecycle hooks

    With optimistic locks on, `version` is owned by the engine: insert sets
    it to 0, update and reload keep it in step with the row. It stays
    writable like any column, but a hand-written value pins the next update
    or reload to that version, which then fails with MissingRecordError
    unless the row carries exactly that value.
    """

    table_name: ClassVar[Optional[str]] = None

    def __init__(self, **values: Any) -> None:
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_connection", None)
        schema = self.get_schema()
        for name, column in schema.columns.items():
            self._values[name] = column.initial()
        if schema.id_key:
            self._values.setdefault(schema.id_key, None)
        for name, value in values.items():
            self.set(name, value)

    # -- Configuration -----------------------------------------------------

    @classmethod
    def configuration(cls) -> Dict[str, Any]:
        """
        Option overrides for this record type.

        Subclasses merge their options over the parent's:

            return {**super().configuration(), "timestamps": False}
        """
        return {}

    @classmethod
    def get_configuration(cls) -> DaoConfiguration:
        return resolve_configuration(cls)

    @classmethod
    def get_config_option(cls, name: str) -> Any:
        return resolve_configuration(cls).option(name)

    @classmethod
    def get_schema(cls) -> PropertySchema:
        return schema_for(cls)

    @classmethod
    def is_phid_primary_id(cls) -> bool:
        return cls.get_config_option(CONFIG_IDS) == IDS_PHID

    @classmethod
    def id_key(cls) -> Optional[str]:
        """Primary key column; override to rename it, or return None for none."""
        return PHID_FIELD if cls.is_phid_primary_id() else "id"

    @classmethod
    def id_key_for_use(cls) -> str:
        id_key = cls.get_schema().id_key
        if not id_key:
            raise StructuralError(
                f"{cls.__name__} does not have a single-part primary key. "
                "The operation you called requires one."
            )
        return id_key

    @classmethod
    def get_table_name(cls) -> str:
        table = cls.get_schema().table_name
        if not table:
            raise ConfigurationError(f"{cls.__name__} does not declare a table_name.")
        return table

    @classmethod
    def transient_fields(cls) -> Sequence[str]:
        """Declared columns that are never written to the database."""
        return ()

    def generate_phid(self) -> str:
        """Return a new PHID for this record; required for PHID keys or aux PHIDs."""
        raise ConfigurationError(
            f"{type(self).__name__} uses PHIDs but does not override generate_phid()."
        )

    def establish_connection(self, mode: str) -> Connection:
        """Open the connection this record's statements run on."""
        raise ConfigurationError(
            f"{type(self).__name__} does not implement establish_connection()."
        )

    # -- Examining ---------------------------------------------------------

    def get_connection(self, mode: str) -> Connection:
        """
        Connection handle for this record, established on first use.

        The mode only selects which lock clause SELECTs carry; one handle
        serves both reads and writes for the record's lifetime.
        """
        if mode not in CONNECTION_MODES:
            raise ArgumentError(f"Unknown mode '{mode}', should be 'r' or 'w'.")
        if self._connection is None:
            object.__setattr__(self, "_connection", self.establish_connection(mode))
        return self._connection

    def get_id(self) -> Any:
        return self._values.get(self.id_key_for_use())

    def set_id(self, value: Any) -> "Record":
        self._values[self.id_key_for_use()] = value
        return self

    def get(self, name: str) -> Any:
        accessor = self.get_schema().accessors.field(name)
        if accessor is None:
            raise ArgumentError(f"Bad getter call: {type(self).__name__} has no field '{name}'.")
        return accessor.read(self._values)

    def set(self, name: str, value: Any) -> "Record":
        accessor = self.get_schema().accessors.field(name)
        if accessor is None:
            raise ArgumentError(f"Bad setter call: {type(self).__name__} has no field '{name}'.")
        accessor.write(self._values, value)
        return self

    def get_property_values(self) -> Dict[str, Any]:
        return {name: self._values.get(name) for name in self.get_schema().canonical_names}

    def get_persistent_property_values(self) -> Dict[str, Any]:
        values = self.get_property_values()
        for name in self.transient_fields():
            values.pop(name, None)
        return values

    def _query_builder(self, connection: Connection) -> QueryBuilder:
        return QueryBuilder(self.get_table_name(), connection.dialect)

    def _allocator(self) -> IdAllocator:
        return resolve_allocator(self.get_config_option(CONFIG_IDS))

    def _uses_locks(self) -> bool:
        return bool(self.get_config_option(CONFIG_OPTIMISTIC_LOCKS))

    # -- Loading -----------------------------------------------------------

    def load(self, id: Any) -> Optional["Record"]:
        """Populate this record from the row with the given id, or return None."""
        ident = _coerce_id(id)
        where = self._query_builder(self.get_connection("r")).key_clause(self.id_key_for_use())
        return self.load_one_where(where, ident)

    def load_all(self) -> Union[Dict[Any, "Record"], List["Record"]]:
        return self.load_all_where("1 = 1")

    def load_all_where(self, clause: str, *args: Any) -> Union[Dict[Any, "Record"], List["Record"]]:
        """
        Load every matching row as a new record.

        Results are keyed by primary key when the type has one, otherwise
        returned as a list in row order.
        """
        return self.load_all_from_rows(self.load_raw_data_where(clause, *args))

    def load_one_where(self, clause: str, *args: Any) -> Optional["Record"]:
        """
        Populate this record from the single matching row.

        Returns None when nothing matches; raises CardinalityError when more
        than one row does.
        """
        rows = self.load_raw_data_where(clause, *args)
        if len(rows) > 1:
            raise CardinalityError(
                f"More than 1 result from load_one_where() on {self.get_table_name()}: {len(rows)} rows."
            )
        if not rows:
            return None
        return self.load_from_row(rows[0])

    def load_raw_data_where(self, clause: str, *args: Any) -> List[Row]:
        connection = self.get_connection("r")
        statement = self._query_builder(connection).select(clause, args, lock=lock_mode(connection))
        rows = connection.query(statement)
        log.debug(
            "select",
            extra={"table": self.get_table_name(), "operation": "select", "rows": len(rows)},
        )
        return rows

    def reload(self) -> "Record":
        """
        Re-read this record's row.

        With optimistic locks on, the row must also still carry the version
        this record holds; a mismatch is reported the same way as a deleted
        row, through MissingRecordError.
        """
        if not self.get_id():
            raise ArgumentError("Unable to reload a record that has no primary key value.")

        use_locks = self._uses_locks()
        connection = self.get_connection("r")
        where = self._query_builder(connection).key_clause(self.id_key_for_use(), with_version=use_locks)
        args: List[Any] = [self.get_id()]
        if use_locks:
            args.append(self._values.get(VERSION_FIELD))

        if self.load_one_where(where, *args) is None:
            log.warning(
                "reload found no matching row",
                extra={"table": self.get_table_name(), "operation": "reload", "locking": use_locks},
            )
            raise MissingRecordError(use_locks)
        return self

    def load_from_row(self, row: Mapping[str, Any]) -> "Record":
        """Decode a raw row and copy its values onto this record."""
        schema = self.get_schema()
        data: Dict[str, Any] = {}
        for column, value in row.items():
            data[schema.resolve(column) or column] = value

        self.will_read_data(data)
        self._values.update(data)
        self.did_read_data()
        return self

    def load_all_from_rows(self, rows: Iterable[Mapping[str, Any]]) -> Union[Dict[Any, "Record"], List["Record"]]:
        id_key = self.get_schema().id_key
        if id_key:
            keyed: Dict[Any, Record] = {}
            for row in rows:
                record = self._spawn().load_from_row(row)
                keyed[record._values.get(id_key)] = record
            return keyed
        return [self._spawn().load_from_row(row) for row in rows]

    def _spawn(self) -> "Record":
        """Copy of this record with independent field state and a shared connection."""
        clone = type(self).__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone.__dict__["_values"] = copy.deepcopy(self._values)
        return clone

    # -- Writing -----------------------------------------------------------

    def save(self) -> "Record":
        if self.should_insert_when_saved():
            return self.insert()
        return self.update()

    def insert(self) -> "Record":
        return self._insert_record(INSERT)

    def replace(self) -> "Record":
        return self._insert_record(REPLACE)

    def update(self) -> "Record":
        use_locks = self._uses_locks()

        self.will_save_object()
        data = self.get_persistent_property_values()
        self.will_write_data(data)
        if use_locks:
            data.pop(VERSION_FIELD, None)

        connection = self.get_connection("w")
        version = self._values.get(VERSION_FIELD)
        statement = self._query_builder(connection).update(
            data,
            self.id_key_for_use(),
            self.get_id(),
            version=version,
            locking=use_locks,
        )
        connection.query(statement)
        affected = connection.affected_rows()
        log.debug(
            "update",
            extra={"table": self.get_table_name(), "operation": "update", "affected_rows": affected},
        )

        if affected != 1:
            log.warning(
                "update matched no row",
                extra={
                    "table": self.get_table_name(),
                    "operation": "update",
                    "locking": use_locks,
                    "affected_rows": affected,
                },
            )
            raise MissingRecordError(use_locks)

        if use_locks:
            self._values[VERSION_FIELD] = version + 1

        self.did_write_data()
        return self

    def delete(self) -> "Record":
        self.will_delete()

        connection = self.get_connection("w")
        statement = self._query_builder(connection).delete(self.id_key_for_use(), self.get_id())
        connection.query(statement)
        log.debug(
            "delete",
            extra={
                "table": self.get_table_name(),
                "operation": "delete",
                "affected_rows": connection.affected_rows(),
            },
        )

        self.did_delete()
        return self

    def _insert_record(self, mode: str) -> "Record":
        use_locks = self._uses_locks()
        allocator = self._allocator()

        self.will_save_object()
        data = self.get_persistent_property_values()
        self.will_write_data(data)
        allocator.prepare_insert(self, data)
        if use_locks:
            data[VERSION_FIELD] = 0

        connection = self.get_connection("w")
        statement = self._query_builder(connection).insert(
            data,
            mode=mode,
            id_key=self.get_schema().id_key,
            returning=allocator.returning_column(self),
        )
        connection.query(statement)
        log.debug(
            mode.lower(),
            extra={"table": self.get_table_name(), "operation": mode.lower(), "id_mechanism": allocator.name},
        )

        if use_locks:
            self._values[VERSION_FIELD] = 0
        allocator.after_insert(self, connection)

        self.did_write_data()
        return self

    def should_insert_when_saved(self) -> bool:
        """Decide between INSERT and UPDATE for `save()`; override for manual keys."""
        return self._allocator().should_insert(self)

    # -- Hooks -------------------------------------------------------------

    def will_save_object(self) -> None:
        """Stamp timestamps and assign PHIDs before any write."""
        if self.get_config_option(CONFIG_TIMESTAMPS):
            now = int(time.time())
            if not self._values.get(DATE_CREATED_FIELD):
                self._values[DATE_CREATED_FIELD] = now
            self._values[DATE_MODIFIED_FIELD] = now

        if self.is_phid_primary_id():
            if not self.get_id():
                self.set_id(self.generate_phid())
        elif self.get_config_option(CONFIG_AUX_PHID) and not self._values.get(PHID_FIELD):
            self._values[PHID_FIELD] = self.generate_phid()

    def will_write_data(self, data: Dict[str, Any]) -> None:
        encode_columns(data, self.get_config_option(CONFIG_SERIALIZATION) or {})

    def did_write_data(self) -> None:
        pass

    def will_read_data(self, data: Dict[str, Any]) -> None:
        decode_columns(data, self.get_config_option(CONFIG_SERIALIZATION) or {})

    def did_read_data(self) -> None:
        pass

    def will_delete(self) -> None:
        pass

    def did_delete(self) -> None:
        pass

    # -- Attribute access --------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails: virtual columns and accessors.
        if name.startswith("_"):
            raise AttributeError(name)
        values = self.__dict__.get("_values")
        if values is None:
            raise AttributeError(name)
        schema = self.get_schema()
        canonical = schema.resolve(name)
        if canonical is not None:
            return values.get(canonical)
        if name in values:
            return values[name]
        if name.startswith(("get", "set")):
            return self._bind_accessor(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
            return
        canonical = self.get_schema().resolve(name)
        if canonical is None:
            object.__setattr__(self, name, value)
        else:
            self._values[canonical] = value

    def _bind_accessor(self, method_name: str) -> Any:
        entry = self.get_schema().accessors.method(method_name)

        def call(*args: Any, **kwargs: Any) -> Any:
            if entry is None:
                raise ArgumentError(f"Bad accessor call: {method_name}")
            kind, accessor = entry
            if kwargs:
                raise ArgumentError(f"Accessor calls take positional arguments only: {method_name}")
            if kind == GETTER:
                if args:
                    raise ArgumentError(f"Getter call should have zero args: {method_name}")
                return accessor.read(self._values)
            if len(args) != 1:
                raise ArgumentError(f"Setter should have exactly one arg: {method_name}")
            accessor.write(self._values, args[0])
            return self

        call.__name__ = method_name
        return call

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.get_property_values().items())
        return f"{type(self).__name__}({fields})"


__all__ = ["CONNECTION_MODES", "Record"]
