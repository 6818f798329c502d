"""
Column/field descriptors that bind a pydantic record type to one table.

A TableMapping is the only thing a RelationalStore knows about its record
type: which table to hit, which column is the primary key, and how to turn a
record into column values and a fetched row back into a record.

Usage:
    from relstore.domain.mapping import TableMapping

    mapping = TableMapping.for_model(Building, table="Building", primary_key="bin")
    print(mapping.create_table_sql().as_string(conn))
"""

from __future__ import annotations

import datetime as dt
import types
import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import (
    Any,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
)

from psycopg import sql
from psycopg.types.json import Jsonb
from pydantic import AwareDatetime, BaseModel, NaiveDatetime, ValidationError

from relstore.errors import SchemaMismatch

T = TypeVar("T", bound=BaseModel)

# Plain datetime is stored without a zone; annotate with AwareDatetime to get
# a timestamptz column.
_SQL_TYPES: Dict[Any, str] = {
    AwareDatetime: "timestamptz",
    NaiveDatetime: "timestamp",
    bool: "boolean",
    int: "integer",
    float: "double precision",
    Decimal: "numeric",
    str: "text",
    uuid.UUID: "uuid",
    dt.datetime: "timestamp",
    dt.date: "date",
    dict: "jsonb",
    list: "jsonb",
}

_AUTO_KEY_TYPES = {"integer": "serial", "bigint": "bigserial"}


@dataclass(frozen=True)
class ColumnSpec:
    """
    One field <-> column binding.

    ``key`` is the name pydantic expects when validating a row back into the
    model (the alias when one is declared).
    """

    field: str
    column: str
    key: str
    sql_type: str = "text"
    nullable: bool = True


def _unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0], True
    return annotation, False


def infer_sql_type(annotation: Any) -> Tuple[str, bool]:
    """
    Infer a PostgreSQL column type from a field annotation.

    Returns the type name and whether the annotation admits None. Unknown
    annotations fall back to ``text``.
    """
    inner, optional = _unwrap_optional(annotation)
    base = get_origin(inner) or inner
    # bool before int: bool is an int subclass
    for py_type, sql_type in _SQL_TYPES.items():
        if isinstance(base, type) and issubclass(base, py_type):
            return sql_type, optional
    return "text", optional


def columns_for_model(
    model: Type[BaseModel],
    overrides: Optional[Mapping[str, ColumnSpec]] = None,
    exclude: Iterable[str] = (),
) -> List[ColumnSpec]:
    """
    Build ColumnSpecs for every field of a pydantic model, in declaration order.
    """
    overrides = dict(overrides or {})
    skipped = set(exclude)
    columns: List[ColumnSpec] = []
    for name, info in model.model_fields.items():
        if name in skipped:
            continue
        if name in overrides:
            columns.append(overrides.pop(name))
            continue
        key = info.alias or name
        sql_type, optional = infer_sql_type(info.annotation)
        columns.append(
            ColumnSpec(
                field=name,
                column=key,
                key=key,
                sql_type=sql_type,
                nullable=optional or not info.is_required(),
            )
        )
    if overrides:
        raise ValueError(f"Column overrides for unknown fields: {', '.join(sorted(overrides))}")
    return columns


@dataclass(frozen=True)
class TableMapping(Generic[T]):
    """
    Descriptor binding a record model to a table keyed by one column.

    With ``auto_key`` the database generates the key: inserts omit the key
    column and read the generated value back.
    """

    model: Type[T]
    table: str
    primary_key: ColumnSpec
    columns: Tuple[ColumnSpec, ...]
    schema: str = "public"
    auto_key: bool = False

    def __post_init__(self) -> None:
        names = [c.column for c in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate column names in mapping for {self.table}: {names}")
        if self.primary_key not in self.columns:
            raise ValueError(
                f"Primary key {self.primary_key.field!r} is not a mapped column of {self.table}"
            )

    @classmethod
    def for_model(
        cls,
        model: Type[T],
        table: str,
        primary_key: str,
        schema: str = "public",
        auto_key: bool = False,
        columns: Optional[Sequence[ColumnSpec]] = None,
        exclude: Iterable[str] = (),
    ) -> "TableMapping[T]":
        """
        Derive a mapping from a model's fields.

        ``primary_key`` is the field name (not the column name). Explicit
        ``columns`` override inference field by field.
        """
        overrides = {c.field: c for c in columns or ()}
        specs = columns_for_model(model, overrides=overrides, exclude=exclude)
        pk = next((c for c in specs if c.field == primary_key), None)
        if pk is None:
            raise ValueError(f"{model.__name__} has no mapped field {primary_key!r}")
        pk_spec = replace(pk, nullable=False)
        specs = [pk_spec if c is pk else c for c in specs]
        return cls(
            model=model,
            table=table,
            primary_key=pk_spec,
            columns=tuple(specs),
            schema=schema,
            auto_key=auto_key,
        )

    @property
    def identifier(self) -> sql.Identifier:
        """Schema-qualified, quoted table name."""
        return sql.Identifier(self.schema, self.table)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}"

    @property
    def value_columns(self) -> Tuple[ColumnSpec, ...]:
        """Columns other than the primary key."""
        return tuple(c for c in self.columns if c != self.primary_key)

    @property
    def insert_columns(self) -> Tuple[ColumnSpec, ...]:
        return self.value_columns if self.auto_key else self.columns

    def key_of(self, record: T) -> Any:
        """Read the primary-key value from the record as it is right now."""
        return getattr(record, self.primary_key.field)

    def with_key(self, record: T, key: Any) -> T:
        return record.model_copy(update={self.primary_key.field: key})

    def to_params(self, record: T, columns: Sequence[ColumnSpec]) -> List[Any]:
        """Column values for ``columns``, in order, adapted for psycopg."""
        params = []
        for spec in columns:
            value = getattr(record, spec.field)
            if spec.sql_type == "jsonb" and value is not None:
                value = Jsonb(value)
            params.append(value)
        return params

    def from_row(self, row: Mapping[str, Any]) -> T:
        """
        Validate a fetched row (column name -> value) into a fresh record.

        Raises SchemaMismatch when a mapped column is missing or a value does
        not fit the model.
        """
        missing = [c.column for c in self.columns if c.column not in row]
        if missing:
            raise SchemaMismatch(
                f"Row is missing mapped columns {missing}",
                table=self.qualified_name,
            )
        data = {c.key: row[c.column] for c in self.columns}
        try:
            return self.model.model_validate(data)
        except ValidationError as exc:
            raise SchemaMismatch(
                f"Row does not fit {self.model.__name__}: {exc.error_count()} validation error(s)",
                table=self.qualified_name,
                keys=[row.get(self.primary_key.column)],
            ) from exc

    def create_table_sql(self, if_not_exists: bool = True) -> sql.Composed:
        """
        CREATE TABLE statement for this mapping.

        The primary key is NOT NULL with a named PRIMARY KEY constraint; no
        other constraints or indexes are emitted.
        """
        definitions = []
        for spec in self.columns:
            sql_type = spec.sql_type
            if spec == self.primary_key and self.auto_key:
                sql_type = _AUTO_KEY_TYPES.get(sql_type, sql_type)
            parts = [sql.Identifier(spec.column), sql.SQL(sql_type)]
            if not spec.nullable:
                parts.append(sql.SQL("NOT NULL"))
            definitions.append(sql.SQL(" ").join(parts))
        constraint = f"pk_{self.table}_{self.primary_key.column}".lower()
        definitions.append(
            sql.SQL("CONSTRAINT {} PRIMARY KEY ({})").format(
                sql.Identifier(constraint), sql.Identifier(self.primary_key.column)
            )
        )
        return sql.SQL("CREATE TABLE {exists}{table} ({defs})").format(
            exists=sql.SQL("IF NOT EXISTS " if if_not_exists else ""),
            table=self.identifier,
            defs=sql.SQL(", ").join(definitions),
        )


__all__ = [
    "ColumnSpec",
    "TableMapping",
    "columns_for_model",
    "infer_sql_type",
]
