"""
Example domain models for relstore.

``Building`` is keyed by a text building identification number (BIN) and is
the record type exercised by the integration suite and the seed script.
Columns keep their quoted, mixed-case names through field aliases.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from relstore.domain.mapping import TableMapping


class Building(BaseModel):
    """
    Representation of a single row in the `Building` table.
    """

    bin: str = Field(..., alias="BIN", description="Building identification number (primary key).")
    identifier: Optional[str] = Field(None, alias="Identifier", description="Display name.")
    property_id: Optional[int] = Field(None, alias="PropertyId", description="Owning property.")

    model_config = {
        "populate_by_name": True,
        "validate_assignment": True,
    }


BUILDING_MAPPING: TableMapping[Building] = TableMapping.for_model(
    Building, table="Building", primary_key="bin"
)


__all__ = ["Building", "BUILDING_MAPPING"]
