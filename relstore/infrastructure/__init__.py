"""
Infrastructure package for relstore.

Centralizes database connectivity concerns (DSNs, pools, the gateway).
Keep this layer focused on I/O and resource management, decoupled from
record mapping and store logic.
"""

from relstore.infrastructure.db_factory import build_dsn, create_sync_pool
from relstore.infrastructure.gateway import (
    DatabaseGateway,
    GatewaySession,
    PgGateway,
    Session,
)

__all__ = [
    "DatabaseGateway",
    "GatewaySession",
    "PgGateway",
    "Session",
    "build_dsn",
    "create_sync_pool",
]
