"""
Database gateway: the only component that touches a PostgreSQL connection.

The gateway runs DDL, answers table-existence questions and executes
parameterized statements. Every call runs in its own transaction; callers
that need several statements to commit or roll back together use
``transaction()`` and issue them through the yielded session.

Usage:
    with PgGateway.connect() as gateway:
        gateway.transact_ddl('CREATE TABLE "Building" (...)')
        with gateway.transaction() as tx:
            tx.execute_many(insert_sql, rows)
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

import psycopg
from psycopg import Connection, sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from relstore.config import Settings, get_settings
from relstore.errors import translate_error
from relstore.infrastructure.db_factory import apply_statement_timeout, create_sync_pool
from relstore.utils.logging import get_logger

log = get_logger(__name__)

Query = Union[str, sql.Composable]
Params = Optional[Sequence[Any]]
Row = Dict[str, Any]


@runtime_checkable
class Session(Protocol):
    """Statement primitives bound to one open transaction."""

    def execute(self, query: Query, params: Params = None) -> int: ...

    def execute_many(self, query: Query, params_seq: Iterable[Sequence[Any]]) -> None: ...

    def fetch_all(self, query: Query, params: Params = None) -> List[Row]: ...

    def fetch_one(self, query: Query, params: Params = None) -> Optional[Row]: ...


@runtime_checkable
class DatabaseGateway(Protocol):
    """
    Contract the relational store consumes.

    Implementations must raise relstore.errors.StoreError subclasses, never
    driver exceptions.
    """

    def table_exists(self, name: str, schema: str = "public") -> bool: ...

    def try_drop_table(self, name: str, schema: str = "public") -> None: ...

    def transact_ddl(self, ddl: Query) -> None: ...

    def execute(self, query: Query, params: Params = None) -> int: ...

    def fetch_all(self, query: Query, params: Params = None) -> List[Row]: ...

    def transaction(self) -> Any: ...


class GatewaySession:
    """
    Session over a single psycopg connection inside an open transaction.

    Driver errors are translated before they leave any method, so the
    surrounding transaction sees a StoreError and rolls back.
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def execute(self, query: Query, params: Params = None) -> int:
        """Run one statement and return the number of affected rows."""
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                return max(cur.rowcount, 0)
        except psycopg.Error as exc:
            raise translate_error(exc) from exc

    def execute_many(self, query: Query, params_seq: Iterable[Sequence[Any]]) -> None:
        try:
            with self._conn.cursor() as cur:
                cur.executemany(query, params_seq)
        except psycopg.Error as exc:
            raise translate_error(exc) from exc

    def fetch_all(self, query: Query, params: Params = None) -> List[Row]:
        try:
            with self._conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                return cur.fetchall()
        except psycopg.Error as exc:
            raise translate_error(exc) from exc

    def fetch_one(self, query: Query, params: Params = None) -> Optional[Row]:
        try:
            with self._conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                return cur.fetchone()
        except psycopg.Error as exc:
            raise translate_error(exc) from exc


class PgGateway:
    """
    PostgreSQL gateway over a psycopg ConnectionPool.

    The pool is injected; ``connect`` builds one from settings for callers
    that do not manage their own. A gateway created by ``connect`` owns its
    pool and closes it in ``close``.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        statement_timeout_ms: int = 0,
        owns_pool: bool = False,
    ) -> None:
        self._pool = pool
        self._statement_timeout_ms = statement_timeout_ms
        self._owns_pool = owns_pool

    @classmethod
    def connect(
        cls,
        dsn: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> "PgGateway":
        """
        Open a pool (with connection retries) and wrap it in a gateway.

        Raises ConnectionFailure when the database stays unreachable.
        """
        settings = settings or get_settings()
        try:
            pool = create_sync_pool(dsn=dsn, settings=settings)
        except psycopg.Error as exc:
            raise translate_error(exc) from exc
        return cls(pool, statement_timeout_ms=settings.db_statement_timeout_ms, owns_pool=True)

    @contextmanager
    def transaction(self) -> Iterator[GatewaySession]:
        """
        Yield a session whose statements commit together on clean exit and
        roll back together if anything raises.
        """
        try:
            with self._pool.connection() as conn:
                with conn.transaction():
                    apply_statement_timeout(conn, self._statement_timeout_ms)
                    yield GatewaySession(conn)
        except psycopg.Error as exc:
            raise translate_error(exc) from exc

    def execute(self, query: Query, params: Params = None) -> int:
        with self.transaction() as tx:
            return tx.execute(query, params)

    def fetch_all(self, query: Query, params: Params = None) -> List[Row]:
        with self.transaction() as tx:
            return tx.fetch_all(query, params)

    def table_exists(self, name: str, schema: str = "public") -> bool:
        with self.transaction() as tx:
            row = tx.fetch_one(
                "SELECT EXISTS ("
                " SELECT FROM information_schema.tables"
                " WHERE table_schema = %s AND table_name = %s"
                ") AS present",
                (schema, name),
            )
        return bool(row and row["present"])

    def try_drop_table(self, name: str, schema: str = "public") -> None:
        """Drop the table if present; a missing table is not an error."""
        with self.transaction() as tx:
            tx.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(schema, name)))
        log.info("Dropped table if present", extra={"table": f"{schema}.{name}"})

    def transact_ddl(self, ddl: Query) -> None:
        """
        Run DDL text in one transaction. Plain strings may hold several
        semicolon-separated statements.
        """
        with self.transaction() as tx:
            tx.execute(ddl)
        log.info("DDL applied")

    def close(self) -> None:
        if self._owns_pool:
            self._pool.close()

    def __enter__(self) -> "PgGateway":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "DatabaseGateway",
    "GatewaySession",
    "PgGateway",
    "Session",
]
