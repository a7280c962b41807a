"""
Type handling between the portable type enumeration and PostgreSQL.

This module provides:
- DataType: The portable column type enumeration
- SQL_TYPES / DATA_TYPES: Explicit forward and reverse mapping tables
- to_sql_type / to_data_type / serial_type: Lookups over those tables
- TypeConverter: Convert Python values to psycopg-compatible parameters
"""
import datetime
import enum
import logging
import math
from typing import Any

import numpy as np
import pandas as pd
from psycopg.types.json import Jsonb

logger = logging.getLogger(__name__)

__all__ = [
    'DataType',
    'SQL_TYPES',
    'DATA_TYPES',
    'DEFAULT_SQL_TYPE',
    'to_sql_type',
    'to_data_type',
    'serial_type',
    'TypeConverter',
]


class DataType(str, enum.Enum):
    """Portable column types understood by every dialect binding.
    """
    BIGINT = 'BIGINT'
    BINARY = 'BINARY'
    BOOLEAN = 'BOOLEAN'
    DATE = 'DATE'
    DATETIME = 'DATETIME'
    DECIMAL = 'DECIMAL'
    DOUBLE = 'DOUBLE'
    FLOAT = 'FLOAT'
    INTEGER = 'INTEGER'
    JSON = 'JSON'
    SMALLINT = 'SMALLINT'
    STRING = 'STRING'
    TEXT = 'TEXT'
    TIME = 'TIME'
    TINYINT = 'TINYINT'
    UUID = 'UUID'


DEFAULT_SQL_TYPE = 'character varying (255)'

# Portable type -> column type used in CREATE TABLE / ADD COLUMN
SQL_TYPES: dict[DataType, str] = {
    DataType.BIGINT: 'bigint',
    DataType.BINARY: 'bytea',
    DataType.BOOLEAN: 'boolean',
    DataType.DATE: 'date',
    DataType.DATETIME: 'timestamp with time zone',
    DataType.DECIMAL: 'numeric',
    DataType.DOUBLE: 'double precision',
    DataType.FLOAT: 'real',
    DataType.INTEGER: 'integer',
    DataType.JSON: 'jsonb',
    DataType.SMALLINT: 'smallint',
    DataType.STRING: DEFAULT_SQL_TYPE,
    DataType.TEXT: 'text',
    DataType.TIME: 'time without time zone',
    DataType.TINYINT: 'smallint',  # no one-byte integer in PostgreSQL
    DataType.UUID: 'uuid',
}

# information_schema.columns.data_type (and common aliases) -> portable type
DATA_TYPES: dict[str, DataType] = {
    'bigint': DataType.BIGINT,
    'int8': DataType.BIGINT,
    'boolean': DataType.BOOLEAN,
    'bytea': DataType.BINARY,
    'character': DataType.STRING,
    'character varying': DataType.STRING,
    'date': DataType.DATE,
    'double precision': DataType.DOUBLE,
    'int': DataType.INTEGER,
    'int4': DataType.INTEGER,
    'integer': DataType.INTEGER,
    'json': DataType.JSON,
    'jsonb': DataType.JSON,
    'numeric': DataType.DECIMAL,
    'real': DataType.FLOAT,
    'smallint': DataType.SMALLINT,
    'int2': DataType.SMALLINT,
    'text': DataType.TEXT,
    'time': DataType.TIME,
    'timestamp': DataType.DATETIME,
    'uuid': DataType.UUID,
}

# Sized auto-increment types used for primary key columns
SERIAL_TYPES: dict[DataType, str] = {
    DataType.BIGINT: 'bigserial',
    DataType.SMALLINT: 'smallserial',
}


def to_sql_type(data_type: DataType | str) -> str:
    """Resolve a portable type to a PostgreSQL column type.

    Unknown types resolve to `character varying (255)`.
    """
    try:
        return SQL_TYPES[DataType(data_type)]
    except ValueError:
        logger.debug(f'No column type for {data_type!r}, using {DEFAULT_SQL_TYPE}')
        return DEFAULT_SQL_TYPE


def to_data_type(type_name: str) -> DataType:
    """Resolve an information_schema type name to a portable type.

    PostgreSQL reports date/time types with precision and time zone
    suffixes (`timestamp with time zone`, `time(3) without time zone`), so
    those are matched by prefix before the exact lookup. Anything not in
    the table is reported as STRING.
    """
    type_name = type_name.strip().lower()
    if type_name.startswith('timestamp'):
        return DataType.DATETIME
    if type_name.startswith('time'):
        return DataType.TIME
    return DATA_TYPES.get(type_name, DataType.STRING)


def serial_type(data_type: DataType | str) -> str:
    """Auto-increment column type sized to match the declared type.
    """
    try:
        return SERIAL_TYPES.get(DataType(data_type), 'serial')
    except ValueError:
        return 'serial'


# Type Converter - Handles Python -> Database value conversion

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


def _convert_numpy_value(val: Any) -> float | int | bool | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return pd.Timestamp(val).to_pydatetime()

    return val.item()


class TypeConverter:
    """Convert bound parameter values to types psycopg can adapt.

    Handles NumPy scalars, pandas missing values and non-finite floats.
    A dict is bound as jsonb. Lists are left for psycopg to send as
    arrays; wrap a list in `Jsonb` to store it in a JSON column.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, dict):
            return Jsonb(value)

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of parameters for database operations."""
        if params is None:
            return None

        if isinstance(params, dict):
            return {k: TypeConverter.convert_value(v) for k, v in params.items()}

        if isinstance(params, list | tuple):
            return type(params)(TypeConverter.convert_value(v) for v in params)

        return TypeConverter.convert_value(params)
