"""Scoped access to PAMGuard SQLite databases."""

import logging

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import pandas as pd

from sqlalchemy import Connection, create_engine, inspect, text

logger = logging.getLogger(__name__)


@contextmanager
def database_scope(database_path: str | Path) -> Generator[Connection]:
    """
    Open a read-only connection to a PAMGuard database.

    The connection is closed and the engine disposed when the block exits,
    including when it exits with an error.

    Usage:
        with database_scope("survey.sqlite3") as conn:
            tables = list_tables(conn)

    Raises:
        FileNotFoundError: If the database file does not exist
    """
    path = Path(database_path)
    if not path.exists():
        raise FileNotFoundError(f"Database {path} does not exist")

    engine = create_engine(
        f"sqlite:///file:{path.resolve()}?mode=ro&uri=true",
        echo=False,
    )
    connection = engine.connect()
    logger.debug(f"Opened database {path.name}")
    try:
        yield connection
    finally:
        connection.close()
        engine.dispose()
        logger.debug(f"Closed database {path.name}")


def list_tables(connection: Connection) -> set[str]:
    """Names of all tables in the database."""
    return set(inspect(connection).get_table_names())


def read_table(connection: Connection, table: str) -> pd.DataFrame:
    """
    Read a whole table into a DataFrame.

    Values come back as SQLite stores them; timestamps stay strings and are
    parsed by the caller.
    """
    quoted = table.replace('"', '""')
    return pd.read_sql_query(text(f'SELECT * FROM "{quoted}"'), connection)
