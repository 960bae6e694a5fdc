import sqlite3
from typing import Iterable, List

from ..exceptions import DatabaseError
from ..models import FileRecord
from .schema import INSERT_COLUMNS

INSERT_SQL = (
    f"INSERT OR IGNORE INTO files ({', '.join(INSERT_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in INSERT_COLUMNS)})"
)


class DBOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert_if_absent(self, records: Iterable[FileRecord]) -> int:
        """
        Inserts records inside a single transaction.
        Rows violating the uniqueness constraint are dropped silently.
        Returns the number of rows actually inserted.
        Raises DatabaseError if the transaction fails; nothing is applied then.
        """
        rows = [r.as_row() for r in records]
        before = self.conn.total_changes
        try:
            with self.conn:
                self.conn.executemany(INSERT_SQL, rows)
        except sqlite3.Error as e:
            raise DatabaseError(f"Transaction failed for {len(rows)} records: {e}") from e
        return self.conn.total_changes - before

    def count_rows(self) -> int:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) FROM files")
        return cur.fetchone()[0]

    def fetch_records(self) -> List[FileRecord]:
        cur = self.conn.cursor()
        cur.execute(f"SELECT id, {', '.join(INSERT_COLUMNS)} FROM files ORDER BY id")
        return [
            FileRecord(
                id=r[0], name=r[1], path=r[2], size=r[3], isdir=r[4], machine=r[5],
                ip=r[6], on_external_source=r[7], external_name=r[8], file_type=r[9],
                file_mime=r[10], file_hash=r[11], modified=r[12],
            )
            for r in cur.fetchall()
        ]
