import logging
import pathlib
import sys

import database_postgres as db
import pytest
from testcontainers.postgres import PostgresContainer

from libb import Setting

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
sys.path.insert(0, str(HERE))
sys.path.append('..')
import config

logger = logging.getLogger(__name__)

TEST_TABLE = 'test_table'

TEST_COLUMNS = [
    db.ColumnAttributes('id', db.DataType.INTEGER, allow_null=False, primary_key=True),
    db.ColumnAttributes('first_name', db.DataType.STRING, allow_null=False),
    db.ColumnAttributes('last_name', db.DataType.STRING, allow_null=False),
    db.ColumnAttributes('active', db.DataType.BOOLEAN, allow_null=False, default_value='true'),
    db.ColumnAttributes('age', db.DataType.SMALLINT),
    db.ColumnAttributes('comments', db.DataType.STRING),
    db.ColumnAttributes('created', db.DataType.DATETIME),
    db.ColumnAttributes('started_date', db.DataType.DATE),
    db.ColumnAttributes('started_time', db.DataType.TIME),
]

INSERT_ROWS = [
    {'first_name': 'Barney', 'last_name': 'Rubble', 'comments': 'This is Barney'},
    {'first_name': 'Fred', 'last_name': 'Flintstone', 'comments': 'This is Fred'},
    {'first_name': 'Bam Bam', 'last_name': 'Rubble', 'active': False},
]


def connection_options() -> db.ConnectionOptions:
    """ConnectionOptions for the test container."""
    return db.ConnectionOptions(
        hostname=config.postgresql.hostname,
        username=config.postgresql.username,
        password=config.postgresql.password,
        database=config.postgresql.database,
        port=config.postgresql.port,
        timeout=config.postgresql.timeout,
    )


def connection_uri() -> str:
    """Connection URI for the test container."""
    pg = config.postgresql
    return f'postgresql://{pg.username}:{pg.password}@{pg.hostname}:{pg.port}/{pg.database}'


@pytest.fixture(scope='session')
def psql_docker(request):
    """Session-scoped PostgreSQL container using testcontainers.

    Testcontainers automatically:
    - Assigns a random available port
    - Waits for the database to be ready
    - Handles cleanup when the session ends
    """
    try:
        container = PostgresContainer(
            image='postgres:16',
            username=config.postgresql.username,
            password=config.postgresql.password,
            dbname=config.postgresql.database,
        )
        container.start()
    except Exception as e:
        logger.error(f'Error starting postgres container: {e}')
        pytest.skip(f'PostgreSQL container unavailable: {e}')

    try:
        # Update config with dynamic host/port
        Setting.unlock()
        config.postgresql.hostname = container.get_container_host_ip()
        config.postgresql.port = int(container.get_exposed_port(5432))
        Setting.lock()

        logger.info(
            f'PostgreSQL container started at '
            f'{config.postgresql.hostname}:{config.postgresql.port}'
        )

        def finalizer():
            try:
                container.stop()
                logger.info('PostgreSQL container stopped')
            except Exception as e:
                logger.warning(f'Error stopping container: {e}')

        request.addfinalizer(finalizer)
        return container

    except Exception as e:
        logger.error(f'Error setting up postgres container: {e}')
        try:
            container.stop()
        except Exception:
            pass
        raise


SCRATCH_TABLES = ['child_table', 'all_types', 'order_items']


def reset_tables(cn):
    for table in SCRATCH_TABLES:
        cn.drop_table(table, if_exists=True)
    cn.drop_table(TEST_TABLE, if_exists=True, cascade=True)


@pytest.fixture
def pg_conn(psql_docker):
    """
    Connected adapter with function scope for clean tests.
    Each test starts with no test tables present.
    """
    cn = db.Connection(connection_options())
    cn.connect()
    assert cn.connected

    try:
        reset_tables(cn)
        yield cn
    finally:
        try:
            if cn.connected:
                reset_tables(cn)
                cn.disconnect()
        except Exception as e:
            logger.warning(f'Error during connection cleanup: {e}')


@pytest.fixture
def people_table(pg_conn):
    """Create the standard test table and return its name."""
    pg_conn.add_table(TEST_TABLE, TEST_COLUMNS)
    return TEST_TABLE


@pytest.fixture
def people_rows(pg_conn, people_table):
    """Standard test table loaded with the three Flintstones rows."""
    pg_conn.insert(people_table, INSERT_ROWS)
    return people_table
