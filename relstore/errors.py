"""
Error taxonomy for relstore.

Every database failure surfaces as a StoreError subclass so callers can tell a
dead connection from a duplicate key without importing psycopg. The original
driver exception is always chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import psycopg
from psycopg import errors as pg_errors


class StoreError(Exception):
    """
    Base class for gateway and store failures.

    The store fills in ``operation``, ``table`` and ``keys`` when an error
    crosses one of its methods; errors raised straight from the gateway leave
    them unset.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        keys: Optional[Sequence[Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.table = table
        self.keys = list(keys) if keys is not None else None

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.table:
            context.append(f"table={self.table}")
        if self.keys:
            shown = ", ".join(repr(k) for k in self.keys[:5])
            if len(self.keys) > 5:
                shown += f", ... ({len(self.keys)} keys)"
            context.append(f"keys=[{shown}]")
        if not context:
            return self.message
        return f"{self.message} ({'; '.join(context)})"


class ConnectionFailure(StoreError):
    """The database could not be reached or the connection broke mid-call."""


class ConstraintViolation(StoreError):
    """A write violated a table constraint, e.g. a duplicate primary key."""


class SchemaMismatch(StoreError):
    """The table or its columns do not match the record's expected shape."""


class GatewayError(StoreError):
    """Any other database error, such as malformed SQL or DDL."""


_SCHEMA_ERRORS = (
    pg_errors.UndefinedTable,
    pg_errors.UndefinedColumn,
    pg_errors.DatatypeMismatch,
    pg_errors.InvalidTextRepresentation,
)


def translate_error(exc: psycopg.Error) -> StoreError:
    """
    Map a psycopg exception onto the relstore error taxonomy.

    The caller is expected to ``raise translate_error(exc) from exc``.
    """
    message = str(exc).strip() or type(exc).__name__
    if isinstance(exc, (psycopg.OperationalError, psycopg.InterfaceError)):
        return ConnectionFailure(message)
    if isinstance(exc, psycopg.IntegrityError):
        return ConstraintViolation(message)
    if isinstance(exc, _SCHEMA_ERRORS):
        return SchemaMismatch(message)
    return GatewayError(message)


__all__ = [
    "StoreError",
    "ConnectionFailure",
    "ConstraintViolation",
    "SchemaMismatch",
    "GatewayError",
    "translate_error",
]
