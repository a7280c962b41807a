"""
Portable connection interface.

Defines the abstract base class a dialect binding implements. Application
code written against `BaseConnection` runs against any binding; the
PostgreSQL binding is `database_postgres.connection.Connection`.

Every DDL/DML method takes an optional, binding-specific `options` value
(a dataclass or a mapping). Bindings ignore option keys they do not know.
"""
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from database_postgres.schema import ColumnAttributes, DataObject
from database_postgres.schema import ForeignKeyAttributes, IndexAttributes
from database_postgres.schema import SelectCriteria, TableAttributes
from database_postgres.schema import WhereCriteria

__all__ = ['BaseConnection']


class BaseConnection(ABC):
    """Dialect-independent connect/disconnect, DDL and DML operations.
    """

    def __enter__(self):
        if not self.connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.connected:
            self.disconnect()

    # Connection operations

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True between a successful connect() and disconnect()."""

    @abstractmethod
    def connect(self) -> None:
        """Open the native client connection.
        """

    @abstractmethod
    def disconnect(self) -> None:
        """Close the native client connection.

        Raises
            NotConnectedError: If not connected
        """

    @abstractmethod
    def add_database(self, database: str, options: Any = None) -> None:
        """Create a database.
        """

    @abstractmethod
    def drop_database(self, database: str, options: Any = None) -> None:
        """Drop a database.
        """

    # DDL operations

    @abstractmethod
    def add_column(self, table: str,
                   columns: ColumnAttributes | Sequence[ColumnAttributes],
                   options: Any = None) -> None:
        """Add one or more columns to a table.

        Args:
            table: Table to alter
            columns: Column, or columns, to add in one statement
            options: Binding-specific options
        """

    @abstractmethod
    def add_foreign_key(self, table: str, column: str,
                        foreign_key: ForeignKeyAttributes,
                        options: Any = None) -> str:
        """Add a foreign key constraint on a column.

        Args:
            table: Referencing table
            column: Referencing column
            foreign_key: Referenced table and column, optional name and actions
            options: Binding-specific options

        Returns
            Name of the constraint, derived when not supplied
        """

    @abstractmethod
    def add_index(self, table: str, index: IndexAttributes,
                  options: Any = None) -> str:
        """Create an index.

        Returns
            Name of the index, derived when not supplied
        """

    @abstractmethod
    def add_table(self, table: str, columns: Sequence[ColumnAttributes],
                  options: Any = None) -> None:
        """Create a table with the given columns.
        """

    @abstractmethod
    def describe_table(self, table: str, options: Any = None) -> TableAttributes:
        """Introspect a table's columns.

        Raises
            TableNotFoundError: If the table does not exist
        """

    @abstractmethod
    def drop_column(self, table: str, column: str, options: Any = None) -> None:
        """Drop a column from a table.
        """

    @abstractmethod
    def drop_foreign_key(self, table: str, constraint: str,
                         options: Any = None) -> None:
        """Drop a foreign key constraint by name.
        """

    @abstractmethod
    def drop_index(self, table: str, index: str, options: Any = None) -> None:
        """Drop an index by name.
        """

    @abstractmethod
    def drop_table(self, table: str, options: Any = None) -> None:
        """Drop a table.
        """

    @abstractmethod
    def drop_tables(self, options: Any = None) -> None:
        """Drop every table.
        """

    # DML operations

    @abstractmethod
    def delete(self, table: str, where: WhereCriteria, options: Any = None) -> int:
        """Delete matching rows.

        Returns
            Number of rows deleted
        """

    @abstractmethod
    def insert(self, table: str, rows: DataObject | Sequence[DataObject],
               options: Any = None) -> int:
        """Insert one or more rows.

        Returns
            Number of rows inserted
        """

    @abstractmethod
    def select(self, table: str, criteria: SelectCriteria | None = None,
               options: Any = None) -> Any:
        """Select rows.

        Returns
            Matching rows
        """

    @abstractmethod
    def truncate(self, table: str, options: Any = None) -> None:
        """Remove every row from a table.
        """

    @abstractmethod
    def update(self, table: str, values: Mapping[str, Any], where: WhereCriteria,
               options: Any = None) -> int:
        """Update matching rows.

        Returns
            Number of rows updated
        """
