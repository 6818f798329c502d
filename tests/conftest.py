"""
Pytest configuration for relstore.

Provides fixtures for:
- Settings override for integration tests
- Database reachability checks
- A gateway over a real PostgreSQL and a freshly created Building table
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from relstore.config import Settings
from relstore.domain.models import BUILDING_MAPPING, Building
from relstore.infrastructure.db_factory import build_dsn
from relstore.infrastructure.gateway import PgGateway
from relstore.store.relational import RelationalStore

BUILDING_TABLE_SQL = (
    'CREATE TABLE "Building" ('
    ' "BIN" text NOT NULL,'
    ' "Identifier" text,'
    ' "PropertyId" text,'
    ' CONSTRAINT pk_building_bin PRIMARY KEY ("BIN"))'
)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "relstore_test"),
        db_connect_retries=1,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return build_dsn(test_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;")
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def gateway(
    test_settings: Settings, test_dsn: str, db_connection_available: bool
) -> Generator[PgGateway, None, None]:
    """
    Session-scoped gateway over a real database.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    gw = PgGateway.connect(dsn=test_dsn, settings=test_settings)
    try:
        yield gw
    finally:
        gw.close()


@pytest.fixture(scope="function")
def building_table(gateway: PgGateway) -> Generator[str, None, None]:
    """
    Drop and recreate the Building table around each test.
    """
    gateway.try_drop_table("Building")
    if not gateway.table_exists("Building"):
        gateway.transact_ddl(BUILDING_TABLE_SQL)
    yield "Building"
    gateway.try_drop_table("Building")


@pytest.fixture(scope="function")
def building_store(gateway: PgGateway, building_table: str) -> RelationalStore[Building]:
    return RelationalStore(gateway, BUILDING_MAPPING)
