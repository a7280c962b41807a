"""
Portable error taxonomy and PostgreSQL error code translation.

Failures are reported as a `DatabaseError` carrying:
- kind: An `ErrorKind` naming the portable condition
- context: The connection operation that failed (`add_table`, `select`, ...)
- source: The original psycopg error, when there is one

Each kind also has a subclass so callers can write `except TableNotFoundError`.
Errors whose SQLSTATE is not in `ERROR_CODES` are not translated; the
psycopg error reaches the caller unchanged.

PostgreSQL Error Codes Documentation:
https://www.postgresql.org/docs/current/errcodes-appendix.html
"""
import enum
import logging

import psycopg
import sqlalchemy.exc

logger = logging.getLogger(__name__)

__all__ = [
    'ErrorKind',
    'DatabaseError',
    'NotConnectedError',
    'NotSupportedError',
    'TableNotFoundError',
    'ColumnNotFoundError',
    'IndexNotFoundError',
    'DuplicateTableError',
    'DuplicateColumnError',
    'DuplicateIndexError',
    'ERROR_CODES',
    'error_for',
    'translate_error',
]


class ErrorKind(enum.Enum):
    """Dialect-independent error conditions."""
    NOT_CONNECTED = 'NotConnectedError'
    NOT_SUPPORTED = 'NotSupportedError'
    TABLE_NOT_FOUND = 'TableNotFoundError'
    COLUMN_NOT_FOUND = 'ColumnNotFoundError'
    INDEX_NOT_FOUND = 'IndexNotFoundError'
    DUPLICATE_TABLE = 'DuplicateTableError'
    DUPLICATE_COLUMN = 'DuplicateColumnError'
    DUPLICATE_INDEX = 'DuplicateIndexError'
    DATABASE = 'DatabaseError'


class DatabaseError(Exception):
    """Base class for all errors raised by this package.
    """
    kind = ErrorKind.DATABASE

    def __init__(self, message: str | None = None, context: str | None = None,
                 source: BaseException | None = None) -> None:
        if message is None:
            message = str(source) if source is not None else self.kind.value
        super().__init__(message)
        self.context = context
        self.source = source

    @property
    def sqlstate(self) -> str | None:
        """SQLSTATE of the original error, if any."""
        return getattr(self.source, 'sqlstate', None)

    def __str__(self) -> str:
        message = super().__str__()
        if self.context:
            return f'{self.context}: {message}'
        return message


class NotConnectedError(DatabaseError):
    """Operation attempted before connect() or after disconnect()."""
    kind = ErrorKind.NOT_CONNECTED


class NotSupportedError(DatabaseError):
    """Operation is not implemented for PostgreSQL."""
    kind = ErrorKind.NOT_SUPPORTED


class TableNotFoundError(DatabaseError):
    """The specified table does not exist."""
    kind = ErrorKind.TABLE_NOT_FOUND


class ColumnNotFoundError(DatabaseError):
    """The specified column does not exist."""
    kind = ErrorKind.COLUMN_NOT_FOUND


class IndexNotFoundError(DatabaseError):
    """The specified index (or constraint) does not exist."""
    kind = ErrorKind.INDEX_NOT_FOUND


class DuplicateTableError(DatabaseError):
    """A table with this name already exists."""
    kind = ErrorKind.DUPLICATE_TABLE


class DuplicateColumnError(DatabaseError):
    """A column with this name already exists."""
    kind = ErrorKind.DUPLICATE_COLUMN


class DuplicateIndexError(DatabaseError):
    """An index with this name already exists."""
    kind = ErrorKind.DUPLICATE_INDEX


_ERROR_CLASSES: dict[ErrorKind, type[DatabaseError]] = {
    cls.kind: cls for cls in (
        DatabaseError,
        NotConnectedError,
        NotSupportedError,
        TableNotFoundError,
        ColumnNotFoundError,
        IndexNotFoundError,
        DuplicateTableError,
        DuplicateColumnError,
        DuplicateIndexError,
    )
}

# SQLSTATE -> kind. A dict value maps the calling operation to a kind for
# codes PostgreSQL shares between object types.
ERROR_CODES: dict[str, ErrorKind | dict[str, ErrorKind]] = {
    '42701': ErrorKind.DUPLICATE_COLUMN,     # duplicate_column
    '42703': ErrorKind.COLUMN_NOT_FOUND,     # undefined_column
    '42704': ErrorKind.INDEX_NOT_FOUND,      # undefined_object
    '42P01': ErrorKind.TABLE_NOT_FOUND,      # undefined_table
    '42P07': {                               # duplicate_table (relations, indexes included)
        'add_index': ErrorKind.DUPLICATE_INDEX,
        'add_table': ErrorKind.DUPLICATE_TABLE,
    },
}

# Recognized but deliberately left to the caller as psycopg errors:
# 23502 not_null_violation, 23503 foreign_key_violation, 23505 unique_violation


def error_for(kind: ErrorKind, message: str | None = None, context: str | None = None,
              source: BaseException | None = None) -> DatabaseError:
    """Build the error matching a kind.
    """
    return _ERROR_CLASSES[kind](message, context=context, source=source)


def _native_error(error: BaseException) -> BaseException:
    """Unwrap SQLAlchemy's DBAPIError to the psycopg error it wraps."""
    if isinstance(error, sqlalchemy.exc.DBAPIError) and error.orig is not None:
        return error.orig
    return error


def resolve_kind(sqlstate: str | None, context: str | None = None) -> ErrorKind | None:
    """Look up the portable kind for a SQLSTATE in a calling context.
    """
    entry = ERROR_CODES.get(sqlstate)
    if isinstance(entry, dict):
        return entry.get(context)
    return entry


def translate_error(error: BaseException, context: str | None = None) -> BaseException:
    """Translate a native error into its portable equivalent.

    Returns the error to raise: a `DatabaseError` subclass when the SQLSTATE
    maps to a kind, otherwise the original error unchanged (already
    portable, no SQLSTATE, or an unmapped code).
    """
    if isinstance(error, DatabaseError):
        return error

    native = _native_error(error)
    sqlstate = getattr(native, 'sqlstate', None)
    if not sqlstate:
        return error

    kind = resolve_kind(sqlstate, context)
    if kind is None:
        logger.debug(f'{context}: passing through {type(native).__name__} ({sqlstate})')
        return error

    message = native.diag.message_primary if isinstance(native, psycopg.Error) else None
    logger.debug(f'{context}: {sqlstate} translated to {kind.value}')
    return error_for(kind, message or str(native), context=context, source=native)
