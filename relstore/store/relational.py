"""
Relational store: typed CRUD over one PostgreSQL table keyed by one column.

Rows are always targeted by the primary-key value read from the record at
call time. The store keeps no row handles, no cache and no dirty tracking;
every ``try_load_data`` call re-reads the table.

Each call runs in a single gateway transaction, so a batch either persists
completely or not at all.

Usage:
    from relstore.domain.models import BUILDING_MAPPING, Building
    from relstore.infrastructure.gateway import PgGateway
    from relstore.store.relational import RelationalStore

    with PgGateway.connect() as gateway:
        store = RelationalStore(gateway, BUILDING_MAPPING)
        store.add(Building(bin="OR13-22", identifier="Building A", property_id=1))
        buildings = store.try_load_data()
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generic, Iterable, Iterator, List, Optional, Sequence, TypeVar

from psycopg import sql

from relstore.domain.mapping import TableMapping
from relstore.errors import StoreError
from relstore.infrastructure.gateway import DatabaseGateway
from relstore.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class RelationalStore(Generic[T]):
    """
    Store bound to one table/record-type pair through a TableMapping.

    Parameters
    ----------
    gateway : DatabaseGateway
        Executes statements; injected so several stores can share one pool.
    mapping : TableMapping
        Field/column descriptor for the record type.
    """

    def __init__(self, gateway: DatabaseGateway, mapping: TableMapping) -> None:
        self._gateway = gateway
        self._mapping = mapping

        m = mapping
        table = m.identifier
        pk = sql.Identifier(m.primary_key.column)
        self._insert_sql = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals})").format(
            table=table,
            cols=sql.SQL(", ").join(sql.Identifier(c.column) for c in m.insert_columns),
            vals=sql.SQL(", ").join(sql.Placeholder() * len(m.insert_columns)),
        )
        self._insert_returning_sql = self._insert_sql + sql.SQL(" RETURNING {}").format(pk)
        self._update_sql: Optional[sql.Composed] = None
        if m.value_columns:
            self._update_sql = sql.SQL("UPDATE {table} SET {assignments} WHERE {pk} = %s").format(
                table=table,
                assignments=sql.SQL(", ").join(
                    sql.SQL("{} = %s").format(sql.Identifier(c.column)) for c in m.value_columns
                ),
                pk=pk,
            )
        self._delete_sql = sql.SQL("DELETE FROM {table} WHERE {pk} = ANY(%s)").format(
            table=table, pk=pk
        )
        self._delete_all_sql = sql.SQL("DELETE FROM {}").format(table)
        self._select_sql = sql.SQL("SELECT {cols} FROM {table}").format(
            cols=sql.SQL(", ").join(sql.Identifier(c.column) for c in m.columns),
            table=table,
        )

    @property
    def mapping(self) -> TableMapping:
        return self._mapping

    @contextmanager
    def _operation(self, name: str, keys: Optional[Sequence[Any]] = None) -> Iterator[None]:
        """Annotate StoreErrors crossing this store with operation context."""
        try:
            yield
        except StoreError as exc:
            exc.operation = exc.operation or name
            exc.table = exc.table or self._mapping.qualified_name
            if exc.keys is None and keys is not None:
                exc.keys = list(keys)
            log.warning(
                f"[STORE FAILED] {name}",
                extra={
                    "table": self._mapping.qualified_name,
                    "operation": name,
                    "error_type": type(exc).__name__,
                },
            )
            raise

    def add(self, record: T) -> T:
        """
        Insert one record.

        Raises ConstraintViolation if the key already exists. With an
        auto-generated key the returned copy carries the new key.
        """
        return self.add_many([record])[0]

    def add_many(self, records: Iterable[T]) -> List[T]:
        """
        Insert a batch in one transaction.

        If any row violates a constraint no row from the batch is persisted.
        """
        batch = list(records)
        if not batch:
            return []
        m = self._mapping
        keys = None if m.auto_key else [m.key_of(r) for r in batch]

        with self._operation("add", keys):
            with self._gateway.transaction() as tx:
                if m.auto_key:
                    persisted = []
                    for record in batch:
                        row = tx.fetch_one(
                            self._insert_returning_sql, m.to_params(record, m.insert_columns)
                        )
                        persisted.append(m.with_key(record, row[m.primary_key.column]))
                else:
                    tx.execute_many(
                        self._insert_sql, [m.to_params(r, m.insert_columns) for r in batch]
                    )
                    persisted = batch

        log.info("Records added", extra={"table": m.qualified_name, "rows": len(batch)})
        return persisted

    def update(self, record: T) -> int:
        """
        Rewrite every non-key column of the row whose key matches the record.

        Returns 1 when a row changed, 0 when no row has that key.
        """
        return self.update_many([record])

    def update_many(self, records: Iterable[T]) -> int:
        """
        Update a batch in one transaction; returns the number of rows changed.

        Records whose key is absent are skipped silently.
        """
        batch = list(records)
        if not batch or self._update_sql is None:
            return 0
        m = self._mapping
        keys = [m.key_of(r) for r in batch]

        changed = 0
        with self._operation("update", keys):
            with self._gateway.transaction() as tx:
                for record, key in zip(batch, keys):
                    changed += tx.execute(
                        self._update_sql, [*m.to_params(record, m.value_columns), key]
                    )

        log.info(
            "Records updated",
            extra={"table": m.qualified_name, "rows": len(batch), "count": changed},
        )
        return changed

    def delete(self, record: T) -> int:
        """Delete the row matching the record's key; 0 if it is not there."""
        return self.delete_many([record])

    def delete_many(self, records: Iterable[T]) -> int:
        batch = list(records)
        if not batch:
            return 0
        m = self._mapping
        keys = [m.key_of(r) for r in batch]

        with self._operation("delete", keys):
            with self._gateway.transaction() as tx:
                deleted = tx.execute(self._delete_sql, [keys])

        log.info(
            "Records deleted",
            extra={"table": m.qualified_name, "rows": len(batch), "count": deleted},
        )
        return deleted

    def delete_all(self) -> int:
        """Delete every row in the table and return how many went."""
        with self._operation("delete_all"):
            with self._gateway.transaction() as tx:
                deleted = tx.execute(self._delete_all_sql)

        log.info("Table cleared", extra={"table": self._mapping.qualified_name, "count": deleted})
        return deleted

    def try_load_data(self) -> List[T]:
        """
        Read the whole table into fresh records.

        Order is whatever PostgreSQL returns; an empty table gives an empty
        list. Raises SchemaMismatch when rows do not fit the record type.
        """
        with self._operation("load"):
            with self._gateway.transaction() as tx:
                rows = tx.fetch_all(self._select_sql)
            records = [self._mapping.from_row(row) for row in rows]

        log.info(
            "Records loaded", extra={"table": self._mapping.qualified_name, "rows": len(records)}
        )
        return records


__all__ = ["RelationalStore"]
