"""
Database connection factory utilities for relstore.

Builds DSNs from settings and opens psycopg connection pools. Pools are
returned to the caller rather than cached in a module-level singleton, so each
gateway owns exactly the pool it was given.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from relstore.config import Settings, get_settings
from relstore.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings; credentials are percent-encoded."""
    settings = settings or get_settings()
    return (
        f"postgresql://{quote(settings.db_user, safe='')}:{quote(settings.db_password, safe='')}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(conn: Connection, timeout_ms: int) -> None:
    """
    Set a transaction-local statement timeout. A value of 0 leaves the
    server default in place.
    """
    if timeout_ms and timeout_ms > 0:
        conn.execute("SELECT set_config('statement_timeout', %s, true)", (str(timeout_ms),))


def create_sync_pool(
    dsn: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> ConnectionPool:
    """
    Open a connection pool and wait until it holds a live connection.

    Opening is retried with exponential backoff (``DB_CONNECT_RETRIES``
    attempts); a pool that never becomes ready is closed before the last
    error is re-raised.

    Parameters
    ----------
    dsn : str, optional
        Connection string. Defaults to one built from settings.
    min_size : int, optional
        Minimum number of idle connections to keep.
    max_size : int, optional
        Maximum total connections in the pool.

    Returns
    -------
    ConnectionPool
        An open pool owned by the caller.
    """
    settings = settings or get_settings()
    conninfo = dsn or build_dsn(settings)
    min_size = min_size if min_size is not None else settings.db_pool_min_size
    max_size = max_size if max_size is not None else settings.db_pool_max_size

    def _open() -> ConnectionPool:
        pool = ConnectionPool(
            conninfo=conninfo,
            min_size=min_size,
            max_size=max_size,
            open=True,
            # libpq treats 0 as "wait forever"
            kwargs={"connect_timeout": max(int(settings.db_connect_timeout), 1)},
        )
        try:
            pool.wait(timeout=settings.db_connect_timeout)
        except Exception:
            pool.close()
            raise
        return pool

    retrying = Retrying(
        stop=stop_after_attempt(max(settings.db_connect_retries, 1)),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        before_sleep=lambda state: log.warning(
            "Connection pool not ready, retrying",
            extra={"attempt": state.attempt_number, "host": settings.db_host},
        ),
        reraise=True,
    )
    pool = retrying(_open)
    log.info(
        "Connection pool ready",
        extra={"host": settings.db_host, "min_size": min_size, "max_size": max_size},
    )
    return pool


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "create_sync_pool",
]
