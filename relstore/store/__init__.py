"""
Store package for relstore.

Re-exports the store protocol and the PostgreSQL relational store so
downstream code can import from `relstore.store` directly.
"""

from relstore.store.abstract import RecordStore
from relstore.store.relational import RelationalStore

__all__ = [
    "RecordStore",
    "RelationalStore",
]
