"""
Column, index and foreign key operations against a live server.
"""
import database_postgres as db
import psycopg.errors
import pytest

from tests.fixtures.postgres import TEST_TABLE

pytestmark = pytest.mark.integration


@pytest.fixture
def child_table(pg_conn, people_table):
    pg_conn.add_table('child_table', [
        db.ColumnAttributes('id', db.DataType.INTEGER, primary_key=True),
        db.ColumnAttributes('test_id', db.DataType.INTEGER),
    ])
    return 'child_table'


class TestColumns:

    def test_add_column(self, pg_conn, people_table):
        pg_conn.add_column(people_table, db.ColumnAttributes('nickname', db.DataType.TEXT, default_value='n/a'))
        column = pg_conn.describe_table(people_table).column('nickname')
        assert column == db.ColumnAttributes('nickname', db.DataType.TEXT, default_value='n/a')

    def test_add_several_columns(self, pg_conn, people_table):
        pg_conn.add_column(people_table, [
            db.ColumnAttributes('score', db.DataType.DOUBLE),
            db.ColumnAttributes('token', db.DataType.UUID),
        ])
        names = [c.name for c in pg_conn.describe_table(people_table).columns]
        assert names[-2:] == ['score', 'token']

    def test_add_duplicate_column(self, pg_conn, people_table):
        with pytest.raises(db.DuplicateColumnError) as excinfo:
            pg_conn.add_column(people_table, db.ColumnAttributes('age', db.DataType.SMALLINT))
        assert excinfo.value.context == 'add_column'

    def test_add_column_if_not_exists(self, pg_conn, people_table):
        pg_conn.add_column(people_table, [
            db.ColumnAttributes('age', db.DataType.SMALLINT),
            db.ColumnAttributes('score', db.DataType.DOUBLE),
        ], if_not_exists=True)
        assert pg_conn.describe_table(people_table).column('score') is not None

    def test_drop_column(self, pg_conn, people_table):
        pg_conn.drop_column(people_table, 'comments')
        assert pg_conn.describe_table(people_table).column('comments') is None

    def test_drop_missing_column(self, pg_conn, people_table):
        with pytest.raises(db.ColumnNotFoundError) as excinfo:
            pg_conn.drop_column(people_table, 'no_such_column')
        assert excinfo.value.context == 'drop_column'

    def test_drop_missing_column_if_exists(self, pg_conn, people_table):
        pg_conn.drop_column(people_table, 'no_such_column', if_exists=True)

    def test_drop_column_on_missing_table(self, pg_conn):
        with pytest.raises(db.TableNotFoundError):
            pg_conn.drop_column('no_such_table', 'age')


class TestIndexes:

    def test_add_index_derives_name(self, pg_conn, people_table):
        name = pg_conn.add_index(people_table, db.IndexAttributes('last_name'))
        assert name == f'{TEST_TABLE}_last_name_idx'
        pg_conn.drop_index(people_table, name)

    def test_add_named_multi_column_index(self, pg_conn, people_table):
        name = pg_conn.add_index(people_table, {'columnName': ['last_name', 'first_name'], 'name': 'people_name_idx'})
        assert name == 'people_name_idx'
        pg_conn.drop_index(people_table, name)

    def test_add_duplicate_index(self, pg_conn, people_table):
        pg_conn.add_index(people_table, db.IndexAttributes('last_name'))
        with pytest.raises(db.DuplicateIndexError) as excinfo:
            pg_conn.add_index(people_table, db.IndexAttributes('last_name'))
        assert excinfo.value.context == 'add_index'

    def test_add_index_if_not_exists(self, pg_conn, people_table):
        pg_conn.add_index(people_table, db.IndexAttributes('last_name'))
        pg_conn.add_index(people_table, db.IndexAttributes('last_name'), if_not_exists=True)

    def test_add_index_concurrently(self, pg_conn, people_table):
        name = pg_conn.add_index(people_table, db.IndexAttributes('age'), concurrently=True)
        pg_conn.drop_index(people_table, name, concurrently=True)

    def test_unique_index_enforced(self, pg_conn, people_table):
        pg_conn.add_index(people_table, db.IndexAttributes('first_name', unique=True))
        pg_conn.insert(people_table, {'first_name': 'Fred', 'last_name': 'Flintstone'})
        with pytest.raises(psycopg.errors.UniqueViolation):
            pg_conn.insert(people_table, {'first_name': 'Fred', 'last_name': 'Astaire'})

    def test_drop_missing_index(self, pg_conn, people_table):
        with pytest.raises(db.IndexNotFoundError) as excinfo:
            pg_conn.drop_index(people_table, 'no_such_idx')
        assert excinfo.value.context == 'drop_index'

    def test_drop_missing_index_if_exists(self, pg_conn, people_table):
        pg_conn.drop_index(people_table, 'no_such_idx', if_exists=True)


class TestForeignKeys:

    def test_add_foreign_key(self, pg_conn, child_table):
        name = pg_conn.add_foreign_key(child_table, 'test_id', db.ForeignKeyAttributes(TEST_TABLE, 'id'))
        assert name == 'child_table_test_id_fkey'
        with pytest.raises(psycopg.errors.ForeignKeyViolation):
            pg_conn.insert(child_table, {'test_id': 999})

    def test_foreign_key_on_delete_cascade(self, pg_conn, child_table):
        pg_conn.add_foreign_key(child_table, 'test_id', {
            'tableName': TEST_TABLE, 'columnName': 'id', 'onDelete': 'CASCADE'})
        pg_conn.insert(TEST_TABLE, {'first_name': 'Fred', 'last_name': 'Flintstone'})
        parent_id = pg_conn.select(TEST_TABLE)[0]['id']
        pg_conn.insert(child_table, {'test_id': parent_id})

        pg_conn.delete(TEST_TABLE, {'clause': 'id = %s', 'values': [parent_id]})
        assert pg_conn.select(child_table) == []

    def test_drop_foreign_key(self, pg_conn, child_table):
        name = pg_conn.add_foreign_key(child_table, 'test_id', db.ForeignKeyAttributes(TEST_TABLE, 'id'))
        pg_conn.drop_foreign_key(child_table, name)
        assert pg_conn.insert(child_table, {'test_id': 999}) == 1

    def test_drop_missing_foreign_key(self, pg_conn, child_table):
        with pytest.raises(db.IndexNotFoundError) as excinfo:
            pg_conn.drop_foreign_key(child_table, 'no_such_fkey')
        assert excinfo.value.context == 'drop_foreign_key'

    def test_drop_missing_foreign_key_if_exists(self, pg_conn, child_table):
        pg_conn.drop_foreign_key(child_table, 'no_such_fkey', if_exists=True)


if __name__ == '__main__':
    pytest.main([__file__])
