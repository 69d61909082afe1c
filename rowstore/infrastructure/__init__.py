"""
Infrastructure package for rowstore.

Holds the connection capability contract and its driver adapters. Keep this
layer focused on I/O, decoupled from record mapping logic.
"""

from rowstore.infrastructure.connection import (
    AbstractConnection,
    Connection,
    Statement,
)
from rowstore.infrastructure.postgres import PsycopgConnection, connect_postgres
from rowstore.infrastructure.sqlite import SqliteConnection, connect_sqlite

__all__ = [
    "AbstractConnection",
    "Connection",
    "PsycopgConnection",
    "SqliteConnection",
    "Statement",
    "connect_postgres",
    "connect_sqlite",
]
