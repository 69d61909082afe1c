"""
rowstore - a thin object-relational persistence engine.

Maps typed records onto rows of a single table each, with:

- Three primary key strategies (autoincrement, PHID, manual)
- Optimistic concurrency control through a version column
- Automatic created/modified timestamps
- Per-column serialization (JSON, pickle)
- PostgreSQL (psycopg) and SQLite connection adapters

No joins, no polymorphic storage, no pooling, no migrations.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from rowstore.config import Settings, get_settings
from rowstore.dao import (
    IDS_AUTOINCREMENT,
    IDS_MANUAL,
    IDS_PHID,
    SERIALIZATION_JSON,
    SERIALIZATION_NONE,
    SERIALIZATION_PICKLE,
    Column,
    Record,
)
from rowstore.errors import (
    ArgumentError,
    CardinalityError,
    ConfigurationError,
    DaoError,
    MissingRecordError,
    StructuralError,
)
from rowstore.infrastructure import (
    Connection,
    PsycopgConnection,
    SqliteConnection,
    connect_postgres,
    connect_sqlite,
)
from rowstore.phid import generate_phid
from rowstore.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Records
    "Column",
    "Record",
    "IDS_AUTOINCREMENT",
    "IDS_MANUAL",
    "IDS_PHID",
    "SERIALIZATION_JSON",
    "SERIALIZATION_NONE",
    "SERIALIZATION_PICKLE",
    "generate_phid",
    # Connections
    "Connection",
    "PsycopgConnection",
    "SqliteConnection",
    "connect_postgres",
    "connect_sqlite",
    # Errors
    "ArgumentError",
    "CardinalityError",
    "ConfigurationError",
    "DaoError",
    "MissingRecordError",
    "StructuralError",
    # Logging
    "configure_logging",
    "get_logger",
]
