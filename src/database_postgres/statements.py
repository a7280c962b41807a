"""
SQL statement synthesis for PostgreSQL DDL and DML operations.

Every function here is pure: it takes names, records and options and
returns SQL text (DML builders also return the values to bind). Nothing
is executed, so statements can be inspected and tested without a server.

Names are always passed through `quote_identifier()`. Row values for
insert/update and WHERE values are bound parameters; only DEFAULT clauses
carry inline literals, because PostgreSQL does not accept parameters there.
"""
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from database_postgres.options import AddColumnOptions, AddIndexOptions
from database_postgres.options import AddTableOptions, DropColumnOptions
from database_postgres.options import DropForeignKeyOptions, DropIndexOptions
from database_postgres.options import DropTableOptions
from database_postgres.schema import ColumnAttributes, ForeignKeyAttributes
from database_postgres.schema import IndexAttributes, SelectCriteria
from database_postgres.schema import WhereCriteria
from database_postgres.sql import constraint_name, index_name, make_placeholders
from database_postgres.sql import quote_identifier, quote_literal
from database_postgres.sql import standardize_placeholders
from database_postgres.types import serial_type, to_data_type, to_sql_type

logger = logging.getLogger(__name__)

_CAST_LITERAL = re.compile(r"^'((?:[^']|'')*)'::[\w\s\"]+(?:\(\d+(?:,\s*\d+)?\))?$")


# =============================================================================
# Column and table clauses
# =============================================================================

def column_clause(column: ColumnAttributes) -> str:
    """Render one column definition for CREATE TABLE / ADD COLUMN.

    `<name> <type> [NOT NULL] [PRIMARY KEY | DEFAULT <literal>]`

    A primary key column takes the serial type sized to its declared type
    and never gets a DEFAULT. `auto_increment` is ignored.
    """
    column = ColumnAttributes.coerce(column)
    if column.primary_key:
        resolved_type = serial_type(column.type)
    else:
        resolved_type = to_sql_type(column.type)

    clause = f'{quote_identifier(column.name)} {resolved_type}'
    if not column.allow_null:
        clause += ' NOT NULL'
    if column.primary_key:
        clause += ' PRIMARY KEY'
    elif column.default_value is not None:
        clause += f' DEFAULT {quote_literal(column.default_value)}'
    return clause


def _as_list(value: Any) -> list:
    if isinstance(value, Sequence) and not isinstance(value, str | Mapping):
        return list(value)
    return [value]


# =============================================================================
# DDL
# =============================================================================

def add_table_sql(table: str, columns: Sequence[ColumnAttributes],
                  options: AddTableOptions) -> str:
    """CREATE TABLE [IF NOT EXISTS] <table> (<column>, ...)
    """
    sql = 'CREATE TABLE'
    if options.if_not_exists:
        sql += ' IF NOT EXISTS'
    clauses = ', '.join(column_clause(c) for c in columns)
    return f'{sql} {quote_identifier(table)} ({clauses})'


def add_column_sql(table: str, columns: ColumnAttributes | Sequence[ColumnAttributes],
                   options: AddColumnOptions) -> str:
    """ALTER TABLE <table> ADD COLUMN [IF NOT EXISTS] <column>[, ADD COLUMN ...]
    """
    action = 'ADD COLUMN IF NOT EXISTS' if options.if_not_exists else 'ADD COLUMN'
    actions = ', '.join(f'{action} {column_clause(c)}' for c in _as_list(columns))
    return f'ALTER TABLE {quote_identifier(table)} {actions}'


def drop_column_sql(table: str, column: str, options: DropColumnOptions) -> str:
    """ALTER TABLE <table> DROP COLUMN [IF EXISTS] <column> [CASCADE]
    """
    sql = f'ALTER TABLE {quote_identifier(table)} DROP COLUMN'
    if options.if_exists:
        sql += ' IF EXISTS'
    sql += f' {quote_identifier(column)}'
    if options.cascade:
        sql += ' CASCADE'
    return sql


def drop_table_sql(table: str, options: DropTableOptions) -> str:
    """DROP TABLE [IF EXISTS] <table> [CASCADE]
    """
    sql = 'DROP TABLE'
    if options.if_exists:
        sql += ' IF EXISTS'
    sql += f' {quote_identifier(table)}'
    if options.cascade:
        sql += ' CASCADE'
    return sql


def add_index_sql(table: str, index: IndexAttributes,
                  options: AddIndexOptions) -> tuple[str, str]:
    """CREATE [UNIQUE] INDEX [CONCURRENTLY] [IF NOT EXISTS] <name> ON <table> (<column>, ...)

    Returns
        Tuple of (sql, index name); the name is derived when not supplied
    """
    index = IndexAttributes.coerce(index)
    name = index.name or index_name(table, index.column_names)
    sql = 'CREATE'
    if index.unique:
        sql += ' UNIQUE'
    sql += ' INDEX'
    if options.concurrently:
        sql += ' CONCURRENTLY'
    if options.if_not_exists:
        sql += ' IF NOT EXISTS'
    columns = ', '.join(quote_identifier(c) for c in index.column_names)
    sql += f' {quote_identifier(name)} ON {quote_identifier(table)} ({columns})'
    return sql, name


def drop_index_sql(index: str, options: DropIndexOptions) -> str:
    """DROP INDEX [CONCURRENTLY] [IF EXISTS] <name> [CASCADE]
    """
    sql = 'DROP INDEX'
    if options.concurrently:
        sql += ' CONCURRENTLY'
    if options.if_exists:
        sql += ' IF EXISTS'
    sql += f' {quote_identifier(index)}'
    if options.cascade:
        sql += ' CASCADE'
    return sql


def add_foreign_key_sql(table: str, column: str,
                        foreign_key: ForeignKeyAttributes) -> tuple[str, str]:
    """ALTER TABLE <table> ADD CONSTRAINT <name> FOREIGN KEY (<column>)
    REFERENCES <table> (<column>) [ON DELETE <action>] [ON UPDATE <action>]

    Referential actions are keywords, not values, and are emitted as given.

    Returns
        Tuple of (sql, constraint name); the name is derived when not supplied
    """
    foreign_key = ForeignKeyAttributes.coerce(foreign_key)
    name = foreign_key.name or constraint_name(table, column)
    sql = (f'ALTER TABLE {quote_identifier(table)}'
           f' ADD CONSTRAINT {quote_identifier(name)}'
           f' FOREIGN KEY ({quote_identifier(column)})'
           f' REFERENCES {quote_identifier(foreign_key.table_name)}'
           f' ({quote_identifier(foreign_key.referenced_column)})')
    if foreign_key.on_delete:
        sql += f' ON DELETE {foreign_key.on_delete}'
    if foreign_key.on_update:
        sql += f' ON UPDATE {foreign_key.on_update}'
    return sql, name


def drop_foreign_key_sql(table: str, constraint: str,
                         options: DropForeignKeyOptions) -> str:
    """ALTER TABLE <table> DROP CONSTRAINT [IF EXISTS] <name> [CASCADE]
    """
    sql = f'ALTER TABLE {quote_identifier(table)} DROP CONSTRAINT'
    if options.if_exists:
        sql += ' IF EXISTS'
    sql += f' {quote_identifier(constraint)}'
    if options.cascade:
        sql += ' CASCADE'
    return sql


# =============================================================================
# Introspection
# =============================================================================

def describe_table_sql(table: str, schema: str) -> tuple[str, tuple]:
    """Query confirming a table exists in a schema.
    """
    sql = """
select table_name
from information_schema.tables
where table_name = %s
and table_schema = %s
"""
    return sql, (table, schema)


def describe_columns_sql(table: str, schema: str) -> tuple[str, tuple]:
    """Query listing a table's columns in ordinal order.
    """
    sql = """
select column_name, data_type, is_nullable, column_default
from information_schema.columns
where table_name = %s
and table_schema = %s
order by ordinal_position
"""
    return sql, (table, schema)


def _default_value(column_default: str) -> str:
    """Unwrap `'text'::type` defaults to the text; anything else (numbers,
    function calls, expressions) is returned as PostgreSQL reports it.
    """
    match = _CAST_LITERAL.match(column_default)
    if match:
        return match.group(1).replace("''", "'")
    return column_default


def to_column_attributes(row: Mapping[str, Any]) -> ColumnAttributes:
    """Convert an information_schema.columns row into ColumnAttributes.

    A `nextval(...)` default marks a serial column, which is reported as
    an auto-incrementing primary key with no default value.
    """
    column_default = row.get('column_default')
    serial = bool(column_default) and column_default.startswith('nextval')
    return ColumnAttributes(
        name=row['column_name'],
        type=to_data_type(row['data_type']),
        allow_null=row['is_nullable'] == 'YES',
        primary_key=serial,
        auto_increment=serial,
        default_value=_default_value(column_default) if column_default and not serial else None,
    )


# =============================================================================
# DML
# =============================================================================

def select_sql(table: str, criteria: SelectCriteria) -> tuple[str, tuple]:
    """SELECT <columns|*> FROM <table> [WHERE ...] [ORDER BY ...] [LIMIT n] [OFFSET n]
    """
    criteria = SelectCriteria.coerce(criteria)
    if criteria.columns:
        projection = ', '.join(quote_identifier(c) for c in criteria.columns)
    else:
        projection = '*'
    sql = f'SELECT {projection} FROM {quote_identifier(table)}'

    params: tuple = ()
    if criteria.where and criteria.where.clause:
        clause, params = standardize_placeholders(criteria.where.clause, criteria.where.values)
        sql += f' WHERE {clause}'
    if criteria.order_by:
        sql += ' ORDER BY ' + ', '.join(quote_identifier(c) for c in criteria.order_by)
    if criteria.limit is not None:
        sql += f' LIMIT {int(criteria.limit)}'
    if criteria.offset is not None:
        sql += f' OFFSET {int(criteria.offset)}'
    return sql, params


def insert_sql(table: str, row: Mapping[str, Any]) -> tuple[str, tuple]:
    """INSERT INTO <table> (<columns>) VALUES (%s, ...) for one row.
    """
    if not row:
        return f'INSERT INTO {quote_identifier(table)} DEFAULT VALUES', ()
    columns = ', '.join(quote_identifier(c) for c in row)
    placeholders = make_placeholders(len(row))
    sql = f'INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({placeholders})'
    return sql, tuple(row.values())


def update_sql(table: str, values: Mapping[str, Any],
               where: WhereCriteria) -> tuple[str, tuple]:
    """UPDATE <table> SET <column> = %s, ... WHERE ...

    SET values are bound ahead of the WHERE values.
    """
    if not values:
        raise ValueError('update requires at least one column value')
    where = WhereCriteria.coerce(where)
    assignments = ', '.join(f'{quote_identifier(c)} = %s' for c in values)
    # SET values are always bound, so the clause is escaped even without values
    clause, where_params = standardize_placeholders(where.clause, where.values, bound=True)
    sql = f'UPDATE {quote_identifier(table)} SET {assignments} WHERE {clause}'
    return sql, (*values.values(), *where_params)


def delete_sql(table: str, where: WhereCriteria) -> tuple[str, tuple]:
    """DELETE FROM <table> WHERE ...
    """
    where = WhereCriteria.coerce(where)
    clause, params = standardize_placeholders(where.clause, where.values)
    return f'DELETE FROM {quote_identifier(table)} WHERE {clause}', params


def truncate_sql(table: str) -> str:
    """TRUNCATE <table>
    """
    return f'TRUNCATE {quote_identifier(table)}'
