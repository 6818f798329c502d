"""
relstore - Generic relational store for PostgreSQL.

This package maps plain pydantic record types onto PostgreSQL tables keyed by
a single primary-key column and provides typed CRUD over them:

- Insert one record or an atomic batch
- Update one or many records, targeted by primary key
- Delete one, many, or all records
- Reload the full table into fresh records

Database access goes through an injected gateway (DDL, existence checks,
parameterized statements) backed by a psycopg connection pool.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from relstore.config import Settings, get_settings
from relstore.domain.mapping import ColumnSpec, TableMapping
from relstore.errors import (
    ConnectionFailure,
    ConstraintViolation,
    GatewayError,
    SchemaMismatch,
    StoreError,
)
from relstore.infrastructure.gateway import DatabaseGateway, PgGateway
from relstore.store.abstract import RecordStore
from relstore.store.relational import RelationalStore
from relstore.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Mapping
    "ColumnSpec",
    "TableMapping",
    # Gateway
    "DatabaseGateway",
    "PgGateway",
    # Stores
    "RecordStore",
    "RelationalStore",
    # Errors
    "StoreError",
    "ConnectionFailure",
    "ConstraintViolation",
    "SchemaMismatch",
    "GatewayError",
    # Logging
    "configure_logging",
    "get_logger",
]
