"""
Database schema definitions.
"""
import sqlite3
import logging

INSERT_COLUMNS = (
    "name", "path", "size", "isdir", "machine", "ip", "onexternalsource",
    "externalname", "filetype", "filemime", "filehash", "modified",
)


def init_schema(conn: sqlite3.Connection):
    """
    Applies the schema to the database.
    Idempotent: safe to run on every open.

    The path_unique constraint is the dedup key: two records describing the
    same content at the same place on the same machine collapse to one row.
    """
    with conn:
        conn.execute("""
        CREATE TABLE IF NOT EXISTS files (
            id               INTEGER NOT NULL PRIMARY KEY,
            name             TEXT NOT NULL,
            path             TEXT NOT NULL,      -- parent directory
            size             INTEGER NOT NULL,
            isdir            INTEGER NOT NULL,
            machine          TEXT NOT NULL,
            ip               TEXT NOT NULL,
            onexternalsource INTEGER NOT NULL,
            externalname     TEXT NOT NULL,
            filetype         TEXT NOT NULL,
            filemime         TEXT NOT NULL,
            filehash         TEXT NOT NULL,
            modified         TEXT NOT NULL,
            CONSTRAINT path_unique UNIQUE (path, machine, ip, onexternalsource, externalname, filehash)
        );
        """)

    logging.debug("Database schema initialized.")
