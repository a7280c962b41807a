"""
Value records passed to and returned from connection operations.

None of these outlive the call that builds and consumes them. Each record
can also be given as a plain mapping; `coerce()` converts it, accepting
snake_case or camelCase keys (`allowNull`, `primaryKey`, ...).
"""
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Self

from database_postgres.types import DataType
from database_postgres.utils import coerce_record

logger = logging.getLogger(__name__)

__all__ = [
    'ColumnAttributes',
    'TableAttributes',
    'IndexAttributes',
    'ForeignKeyAttributes',
    'WhereCriteria',
    'SelectCriteria',
    'DataObject',
]

DataObject = dict[str, Any]


class _Record:
    """Mixin giving records a mapping-tolerant constructor."""

    @classmethod
    def coerce(cls, value: Self | Mapping[str, Any] | None) -> Self:
        return coerce_record(cls, value)


@dataclass
class ColumnAttributes(_Record):
    """Portable description of one column.

    A primary key column always becomes an auto-incrementing integer in
    PostgreSQL, whatever `type` says. `auto_increment` on its own changes
    nothing.
    """
    name: str
    type: DataType = DataType.STRING
    allow_null: bool = True
    primary_key: bool = False
    auto_increment: bool = False
    default_value: str | None = None

    def __post_init__(self):
        if isinstance(self.type, DataType):
            return
        try:
            self.type = DataType(self.type.upper())
        except ValueError:
            logger.debug(f"Unknown column type {self.type!r} for {self.name}, using STRING")
            self.type = DataType.STRING


@dataclass
class TableAttributes(_Record):
    """Table name plus its columns in ordinal order."""
    name: str
    columns: list[ColumnAttributes] = field(default_factory=list)

    def __post_init__(self):
        self.columns = [ColumnAttributes.coerce(c) for c in self.columns]

    def column(self, name: str) -> ColumnAttributes | None:
        """Look up a column by name."""
        return next((c for c in self.columns if c.name == name), None)


@dataclass
class IndexAttributes(_Record):
    """Index on one or more columns; the name is derived when omitted."""
    column_name: str | list[str]
    name: str | None = None
    unique: bool = False

    @property
    def column_names(self) -> list[str]:
        if isinstance(self.column_name, str):
            return [self.column_name]
        return list(self.column_name)


@dataclass
class ForeignKeyAttributes(_Record):
    """Referenced side of a foreign key.

    `on_delete` / `on_update` take a referential action such as CASCADE,
    SET NULL or RESTRICT. When `column_name` lists several columns only the
    first is referenced.
    """
    table_name: str
    column_name: str | list[str]
    name: str | None = None
    on_delete: str | None = None
    on_update: str | None = None

    @property
    def referenced_column(self) -> str:
        if isinstance(self.column_name, str):
            return self.column_name
        return self.column_name[0]


@dataclass
class WhereCriteria(_Record):
    """Raw boolean SQL fragment plus the values its placeholders bind.

    Placeholders use psycopg's `%s`, or PostgreSQL's `$1`, `$2`, ...
    Matching the placeholder count to `values` is up to the caller.
    """
    clause: str
    values: Sequence[Any] = ()


@dataclass
class SelectCriteria(_Record):
    """Projection, filter, ordering and paging for a select."""
    columns: list[str] | None = None
    where: WhereCriteria | None = None
    order_by: list[str] | None = None
    limit: int | None = None
    offset: int | None = None

    def __post_init__(self):
        if self.where is not None:
            self.where = WhereCriteria.coerce(self.where)
        if isinstance(self.columns, str):
            self.columns = [self.columns]
        if isinstance(self.order_by, str):
            self.order_by = [self.order_by]
