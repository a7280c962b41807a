"""
Connection settings, per-operation options and result data loaders.
"""
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import pandas as pd
from database_postgres.utils import coerce_record

from libb import ConfigOptions, scriptname

__all__ = [
    'ConnectionOptions',
    'AddColumnOptions',
    'AddForeignKeyOptions',
    'AddIndexOptions',
    'AddTableOptions',
    'DropColumnOptions',
    'DropForeignKeyOptions',
    'DropIndexOptions',
    'DropTableOptions',
    'coerce_options',
    'iterdict_data_loader',
    'pandas_data_loader',
]

T = TypeVar('T')


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader: rows as a list of dicts.
    """
    if not data:
        return []
    return list(data)


def pandas_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for
    empty results.
    """
    if not data:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame.from_records(list(data), columns=columns)


@dataclass
class ConnectionOptions(ConfigOptions):
    """Options

    Structured connection parameters. A `postgresql://` URI may be given
    to the connection instead of these.

    - schema: Schema searched by describe_table (default: public)
    - data_loader: Shapes select results (default: list of dicts)
    """
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 5432
    timeout: int = 0
    appname: str = None
    schema: str = 'public'
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        missing = [name for name in ('hostname', 'database') if not getattr(self, name)]
        if missing:
            raise ValueError(f'Missing required connection options: {missing}')
        self.appname = self.appname or scriptname() or 'python_console'
        if self.data_loader is None:
            self.data_loader = iterdict_data_loader


@dataclass
class AddColumnOptions:
    """if_not_exists: Silently ignore columns that already exist [False]"""
    if_not_exists: bool = False


@dataclass
class AddForeignKeyOptions:
    """No PostgreSQL-specific options."""


@dataclass
class AddIndexOptions:
    """concurrently: Build the index without locking out writes [False]
    if_not_exists: Silently ignore if the index already exists [False]
    """
    concurrently: bool = False
    if_not_exists: bool = False


@dataclass
class AddTableOptions:
    """if_not_exists: Silently ignore if the table already exists [False]"""
    if_not_exists: bool = False


@dataclass
class DropColumnOptions:
    """cascade: Drop objects that depend on the column [False]
    if_exists: Silently ignore if the column does not exist [False]
    """
    cascade: bool = False
    if_exists: bool = False


@dataclass
class DropForeignKeyOptions:
    """cascade: Drop objects that depend on the constraint [False]
    if_exists: Silently ignore if the constraint does not exist [False]
    """
    cascade: bool = False
    if_exists: bool = False


@dataclass
class DropIndexOptions:
    """cascade: Drop objects that depend on the index [False]
    concurrently: Drop the index without locks [False]
    if_exists: Silently ignore if the index does not exist [False]
    """
    cascade: bool = False
    concurrently: bool = False
    if_exists: bool = False


@dataclass
class DropTableOptions:
    """cascade: Drop objects that depend on the table [False]
    if_exists: Silently ignore if the table does not exist [False]
    """
    cascade: bool = False
    if_exists: bool = False


def coerce_options(cls: type[T], options: T | Mapping[str, Any] | None = None,
                   **kw: Any) -> T:
    """Resolve an operation's options from an instance, a mapping and/or
    keyword arguments. Unrecognized keys are ignored.
    """
    if kw:
        merged = {} if options is None else dict(
            options if isinstance(options, Mapping) else vars(options))
        merged.update(kw)
        options = merged
    return coerce_record(cls, options)
