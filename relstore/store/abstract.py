"""
Abstract store interface for relstore.

Concrete stores (currently the PostgreSQL RelationalStore) implement the
RecordStore protocol so callers can depend on typed CRUD without knowing how
records reach the database.
"""

from __future__ import annotations

from typing import Iterable, List, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class RecordStore(Protocol[T]):
    """
    Typed CRUD over one table for one record type.

    Rows are identified by primary key only. Update and delete of an absent
    key are no-ops reported as a zero count, never errors.
    """

    def add(self, record: T) -> T:
        """Insert one record and return it as persisted."""
        ...

    def add_many(self, records: Iterable[T]) -> List[T]:
        """Insert a batch atomically and return the persisted records, in order."""
        ...

    def update(self, record: T) -> int:
        """Rewrite the non-key columns of the row matching the record's key."""
        ...

    def update_many(self, records: Iterable[T]) -> int: ...

    def delete(self, record: T) -> int: ...

    def delete_many(self, records: Iterable[T]) -> int: ...

    def delete_all(self) -> int:
        """Remove every row and return how many were removed."""
        ...

    def try_load_data(self) -> List[T]:
        """Re-read the whole table into fresh records."""
        ...


__all__ = ["RecordStore"]
