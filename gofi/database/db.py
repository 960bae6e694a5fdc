"""
Database connection management.
"""
import sqlite3
import logging
from pathlib import Path
from typing import Optional, Union

from ..exceptions import DatabaseError
from .schema import init_schema


class DBManager:
    """
    Owns the connection to the session's store file.
    Pass ":memory:" for a throwaway in-memory store.
    """

    def __init__(self, db_path: Union[Path, str]):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """
        Opens (or creates) the database and ensures the schema exists.
        """
        if self._conn:
            return self._conn

        logging.info(f"Connecting to database: {self.db_path}")
        try:
            self._conn = sqlite3.connect(self.db_path)

            # Rollback journal rather than WAL: the main file must hold every
            # committed row once closed, since it is shipped as-is.
            self._conn.execute("PRAGMA journal_mode=DELETE;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.execute("PRAGMA temp_store=MEMORY;")

            init_schema(self._conn)
        except sqlite3.Error as e:
            self.close()
            raise DatabaseError(f"Cannot open database {self.db_path}: {e}") from e

        return self._conn

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
