"""
PostgreSQL implementation of the portable connection interface.

This module provides:
1. `Connection`, the adapter: one psycopg connection per instance, opened
   through a SQLAlchemy engine on connect() and released on disconnect()
2. `create_url()`, which turns a URI or ConnectionOptions into a SQLAlchemy URL

Each DDL/DML call follows the same path:
- check the adapter is connected
- build the statement (database_postgres.statements)
- execute it with bound values on the psycopg connection
- translate failures (database_postgres.exceptions.translate_error)
- reshape the result (row count, rows, or TableAttributes)

The psycopg connection runs in autocommit mode, so every statement commits
on its own. Multi-row inserts are therefore not atomic; wrap them in
`transaction()` when they must be.
"""
import logging
import re
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Self

import psycopg
import sqlalchemy as sa
from database_postgres.base import BaseConnection
from database_postgres.exceptions import NotConnectedError, NotSupportedError
from database_postgres.exceptions import TableNotFoundError, translate_error
from database_postgres.options import AddColumnOptions, AddForeignKeyOptions
from database_postgres.options import AddIndexOptions, AddTableOptions
from database_postgres.options import ConnectionOptions, DropColumnOptions
from database_postgres.options import DropForeignKeyOptions, DropIndexOptions
from database_postgres.options import DropTableOptions, coerce_options
from database_postgres.options import iterdict_data_loader
from database_postgres.schema import ColumnAttributes, DataObject
from database_postgres.schema import ForeignKeyAttributes, IndexAttributes
from database_postgres.schema import SelectCriteria, TableAttributes
from database_postgres.schema import WhereCriteria
from database_postgres.statements import add_column_sql, add_foreign_key_sql
from database_postgres.statements import add_index_sql, add_table_sql
from database_postgres.statements import delete_sql, describe_columns_sql
from database_postgres.statements import describe_table_sql, drop_column_sql
from database_postgres.statements import drop_foreign_key_sql, drop_index_sql
from database_postgres.statements import drop_table_sql, insert_sql, select_sql
from database_postgres.statements import to_column_attributes, truncate_sql
from database_postgres.statements import update_sql
from database_postgres.types import TypeConverter
from psycopg.rows import dict_row
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import NullPool

__all__ = [
    'Connection',
    'create_url',
    'is_connection_uri',
]

logger = logging.getLogger(__name__)

DRIVERNAME = 'postgresql+psycopg'

_URI_SCHEME = re.compile(r'^postgres(?:ql)?(?:\+\w+)?://', re.IGNORECASE)


def is_connection_uri(params: Any) -> bool:
    """Check if connection parameters are a `postgresql://` style URI."""
    return isinstance(params, str) and bool(_URI_SCHEME.match(params))


def create_url(params: str | ConnectionOptions,
               url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert a connection URI or ConnectionOptions to a SQLAlchemy URL.

    URIs keep their own query arguments (sslmode, ...); only the driver is
    pinned to psycopg.
    """
    if isinstance(params, str):
        return make_url(params).set(drivername=DRIVERNAME)

    query = {}
    if params.timeout:
        query['connect_timeout'] = str(params.timeout)
    if params.appname:
        query['application_name'] = params.appname

    return url_creator(
        drivername=DRIVERNAME,
        username=params.username,
        password=params.password,
        host=params.hostname,
        port=params.port,
        database=params.database,
        query=query,
    )


@dataclass
class Result:
    """Outcome of one executed statement."""
    rowcount: int
    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)


class Connection(BaseConnection):
    """PostgreSQL connection adapter.

    Starts disconnected. connect() opens exactly one psycopg connection,
    owned by this instance until disconnect(). There is no reconnect or
    retry: a failed connect leaves the adapter disconnected and raises the
    psycopg error.
    """

    def __init__(self, params: str | ConnectionOptions, schema: str | None = None,
                 data_loader: Callable[..., Any] | None = None) -> None:
        """Initialize a disconnected adapter.

        Args:
            params: `postgresql://` URI or ConnectionOptions
            schema: Schema for describe_table, overriding the options
            data_loader: Shapes select results, overriding the options
        """
        if not (is_connection_uri(params) or isinstance(params, ConnectionOptions)):
            raise ValueError('params must be a postgresql:// URI or ConnectionOptions')
        self.params = params
        options = params if isinstance(params, ConnectionOptions) else None
        self.schema = schema or (options.schema if options else 'public')
        self.data_loader = data_loader or (options.data_loader if options else None) \
            or iterdict_data_loader
        self.engine: Engine | None = None
        self.sa_connection: sa.Connection | None = None
        self.dbapi_connection: psycopg.Connection | None = None
        self.calls = 0
        self.time = 0

    def __repr__(self) -> str:
        state = 'connected' if self.connected else 'disconnected'
        return f'<{type(self).__name__} {create_url(self.params).render_as_string()} ({state})>'

    # Connection operations -------------------------------------------------

    @property
    def connected(self) -> bool:
        return self.dbapi_connection is not None

    def connect(self) -> None:
        """Open the psycopg connection in autocommit mode with dict rows.
        """
        if self.connected:
            logger.warning('connect() called on a connected adapter, ignoring')
            return

        engine = sa.create_engine(create_url(self.params), poolclass=NullPool,
                                 isolation_level='AUTOCOMMIT')
        try:
            sa_connection = engine.connect()
        except DBAPIError as err:
            engine.dispose()
            raise err.orig from err
        except Exception:
            engine.dispose()
            raise

        dbapi_connection = sa_connection.connection.driver_connection
        dbapi_connection.row_factory = dict_row

        self.engine = engine
        self.sa_connection = sa_connection
        self.dbapi_connection = dbapi_connection
        logger.debug(f'Connected to {engine.url.render_as_string()}')

    def disconnect(self) -> None:
        """Close the connection and dispose of its engine.
        """
        self._check_connected()
        try:
            self.sa_connection.close()
        finally:
            self.engine.dispose()
            self.engine = None
            self.sa_connection = None
            self.dbapi_connection = None
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')

    def add_database(self, database: str, options: Any = None) -> None:
        raise NotSupportedError('add_database is not supported', context='add_database')

    def drop_database(self, database: str, options: Any = None) -> None:
        raise NotSupportedError('drop_database is not supported', context='drop_database')

    @contextmanager
    def transaction(self) -> Iterator[Self]:
        """Run the calls made inside the block in one transaction.

        Commits when the block exits normally and rolls back when it raises.
        CONCURRENTLY index operations cannot run inside it.
        """
        self._check_connected()
        with self.dbapi_connection.transaction():
            logger.debug('Transaction started')
            yield self
        logger.debug('Transaction committed')

    # DDL operations --------------------------------------------------------

    def add_column(self, table: str,
                   columns: ColumnAttributes | Sequence[ColumnAttributes],
                   options: AddColumnOptions | Mapping | None = None, **kw: Any) -> None:
        """Add one or more columns in a single ALTER TABLE.

        Options:
            if_not_exists: Silently ignore columns that already exist [False]
        """
        self._check_connected()
        sql = add_column_sql(table, columns, coerce_options(AddColumnOptions, options, **kw))
        self._execute('add_column', sql)

    def add_foreign_key(self, table: str, column: str,
                        foreign_key: ForeignKeyAttributes | Mapping,
                        options: AddForeignKeyOptions | Mapping | None = None,
                        **kw: Any) -> str:
        self._check_connected()
        coerce_options(AddForeignKeyOptions, options, **kw)
        sql, name = add_foreign_key_sql(table, column, foreign_key)
        self._execute('add_foreign_key', sql)
        return name

    def add_index(self, table: str, index: IndexAttributes | Mapping,
                  options: AddIndexOptions | Mapping | None = None, **kw: Any) -> str:
        """Create an index, returning its (possibly derived) name.

        Options:
            concurrently: Build without locking out writes [False]
            if_not_exists: Silently ignore if the index already exists [False]
        """
        self._check_connected()
        sql, name = add_index_sql(table, index, coerce_options(AddIndexOptions, options, **kw))
        self._execute('add_index', sql)
        return name

    def add_table(self, table: str, columns: Sequence[ColumnAttributes | Mapping],
                  options: AddTableOptions | Mapping | None = None, **kw: Any) -> None:
        """Create a table.

        Options:
            if_not_exists: Silently ignore if the table already exists [False]
        """
        self._check_connected()
        sql = add_table_sql(table, columns, coerce_options(AddTableOptions, options, **kw))
        self._execute('add_table', sql)

    def describe_table(self, table: str, options: Any = None) -> TableAttributes:
        """Introspect a table's columns from information_schema.

        Indexes and foreign keys are not reported.
        """
        self._check_connected()
        sql, params = describe_table_sql(table, self.schema)
        if not self._execute('describe_table', sql, params).rows:
            raise TableNotFoundError(f"Missing table '{table}'", context='describe_table')

        sql, params = describe_columns_sql(table, self.schema)
        result = self._execute('describe_table', sql, params)
        return TableAttributes(table, [to_column_attributes(row) for row in result.rows])

    def drop_column(self, table: str, column: str,
                    options: DropColumnOptions | Mapping | None = None, **kw: Any) -> None:
        """Drop a column.

        Options:
            cascade: Drop objects that depend on the column [False]
            if_exists: Silently ignore if the column does not exist [False]
        """
        self._check_connected()
        sql = drop_column_sql(table, column, coerce_options(DropColumnOptions, options, **kw))
        self._execute('drop_column', sql)

    def drop_foreign_key(self, table: str, constraint: str,
                         options: DropForeignKeyOptions | Mapping | None = None,
                         **kw: Any) -> None:
        """Drop a foreign key constraint.

        Options:
            cascade: Drop objects that depend on the constraint [False]
            if_exists: Silently ignore if the constraint does not exist [False]
        """
        self._check_connected()
        sql = drop_foreign_key_sql(table, constraint,
                                   coerce_options(DropForeignKeyOptions, options, **kw))
        self._execute('drop_foreign_key', sql)

    def drop_index(self, table: str, index: str,
                   options: DropIndexOptions | Mapping | None = None, **kw: Any) -> None:
        """Drop an index. Index names are schema-wide, so `table` is unused.

        Options:
            cascade: Drop objects that depend on the index [False]
            concurrently: Drop without locks [False]
            if_exists: Silently ignore if the index does not exist [False]
        """
        self._check_connected()
        sql = drop_index_sql(index, coerce_options(DropIndexOptions, options, **kw))
        self._execute('drop_index', sql)

    def drop_table(self, table: str,
                   options: DropTableOptions | Mapping | None = None, **kw: Any) -> None:
        """Drop a table.

        Options:
            cascade: Drop objects that depend on the table [False]
            if_exists: Silently ignore if the table does not exist [False]
        """
        self._check_connected()
        sql = drop_table_sql(table, coerce_options(DropTableOptions, options, **kw))
        self._execute('drop_table', sql)

    def drop_tables(self, options: Any = None) -> None:
        raise NotSupportedError('drop_tables is not supported', context='drop_tables')

    # DML operations --------------------------------------------------------

    def delete(self, table: str, where: WhereCriteria | Mapping,
               options: Any = None) -> int:
        self._check_connected()
        sql, params = delete_sql(table, where)
        return self._execute('delete', sql, params).rowcount

    def insert(self, table: str, rows: DataObject | Sequence[DataObject],
               options: Any = None) -> int:
        """Insert rows one statement at a time.

        Each row commits independently. If a row fails, the rows before it
        stay inserted and the rest are not attempted.
        """
        self._check_connected()
        rows = [rows] if isinstance(rows, Mapping) else list(rows)
        if not rows:
            logger.debug('Skipping insert of empty rows')
            return 0

        inserted = 0
        for row in rows:
            sql, params = insert_sql(table, row)
            inserted += self._execute('insert', sql, params).rowcount
        return inserted

    def select(self, table: str, criteria: SelectCriteria | Mapping | None = None,
               options: Any = None) -> Any:
        self._check_connected()
        sql, params = select_sql(table, criteria)
        result = self._execute('select', sql, params)
        logger.debug(f'Select query returned {len(result.rows)} rows')
        return self.data_loader(result.rows, result.columns, table_name=table)

    def truncate(self, table: str, options: Any = None) -> None:
        self._check_connected()
        self._execute('truncate', truncate_sql(table))

    def update(self, table: str, values: Mapping[str, Any], where: WhereCriteria | Mapping,
               options: Any = None) -> int:
        self._check_connected()
        sql, params = update_sql(table, values, where)
        return self._execute('update', sql, params).rowcount

    # Internals -------------------------------------------------------------

    def _check_connected(self) -> None:
        if not self.connected:
            raise NotConnectedError('Not connected')

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def _execute(self, operation: str, sql: str, params: Sequence[Any] | None = None) -> Result:
        """Execute one statement, translating psycopg errors for `operation`.
        """
        params = TypeConverter.convert_params(tuple(params)) if params else None
        logger.debug(f'{operation}: {sql.strip()} {params or ""}'.rstrip())
        start = time.time()
        try:
            with self.dbapi_connection.cursor() as cursor:
                cursor.execute(sql, params)
                if cursor.description is None:
                    return Result(cursor.rowcount)
                columns = [desc.name for desc in cursor.description]
                return Result(cursor.rowcount, cursor.fetchall(), columns)
        except psycopg.Error as err:
            translated = translate_error(err, operation)
            if translated is err:
                raise
            raise translated from err
        finally:
            self.addcall(time.time() - start)
