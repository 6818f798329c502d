"""
Domain package for relstore.

Exports the record-to-table mapping descriptors and the example models.
Keep this package focused on data definitions and validation concerns.
"""

from relstore.domain.mapping import ColumnSpec, TableMapping
from relstore.domain.models import BUILDING_MAPPING, Building

__all__ = [
    "BUILDING_MAPPING",
    "Building",
    "ColumnSpec",
    "TableMapping",
]
