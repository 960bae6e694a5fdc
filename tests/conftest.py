import socket
import sqlite3
import threading

import pytest

from gofi.database.ops import DBOperations
from gofi.database.schema import init_schema
from gofi.session import new_session


@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)


@pytest.fixture
def scan_root(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def session(tmp_path, scan_root):
    work = tmp_path / "work"
    work.mkdir()
    return new_session(
        root_dir=scan_root,
        work_dir=work,
        hostname="host1",
        ip="10.0.0.1",
        batch_limit=2,
        session_id="test-session",
    )


class Collector:
    """One-shot TCP server that records everything a single client sends."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.sock.settimeout(10)
        self.data = b""
        self.connections = 0
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def target(self) -> str:
        host, port = self.sock.getsockname()
        return f"{host}:{port}"

    def _serve(self):
        try:
            client, _ = self.sock.accept()
        except OSError:
            return
        self.connections += 1
        chunks = []
        with client:
            while True:
                chunk = client.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        self.data = b"".join(chunks)

    def wait(self):
        self._thread.join(timeout=10)
        return self.data

    def close(self):
        self.sock.close()


@pytest.fixture
def collector():
    c = Collector()
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def closed_port():
    """A loopback address nothing is listening on."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    host, port = s.getsockname()
    s.close()
    return f"{host}:{port}"
