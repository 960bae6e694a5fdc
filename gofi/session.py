"""
Per-run session context.

Everything a run needs to know about itself (where to scan, how to label
records, where its private artifacts live) is frozen into one
SessionContext created at startup and passed to every stage.
"""
import logging
import random
import socket
import string
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import config


@dataclass(frozen=True)
class SessionContext:
    root_dir: Path
    hostname: str
    ip: str
    external_name: str
    batch_limit: int
    session_id: str
    tmp_dir: Path
    db_path: Path

    @property
    def on_external_source(self) -> int:
        return 1 if self.external_name else 0

    @property
    def transfer_name(self) -> str:
        """Filename announced to the collector in the transfer header."""
        return f"{config.TRANSFER_PREFIX}{self.session_id}.db"


def new_session(root_dir: Path,
                work_dir: Optional[Path] = None,
                hostname: Optional[str] = None,
                ip: Optional[str] = None,
                external_name: str = "",
                batch_limit: int = config.DEFAULT_BATCH_LIMIT,
                session_id: Optional[str] = None) -> SessionContext:
    """
    Creates the context for one run.
    The temp dir and database file are namespaced by the session id so
    concurrent runs in the same work dir never share files.
    Nothing is created on disk here.
    """
    if batch_limit < 1:
        raise ValueError(f"batch_limit must be >= 1, got {batch_limit}")

    work_dir = work_dir or Path.cwd()
    session_id = session_id or str(uuid.uuid4())

    return SessionContext(
        root_dir=Path(root_dir),
        hostname=hostname or get_hostname(),
        ip=ip or get_ip(),
        external_name=external_name or "",
        batch_limit=batch_limit,
        session_id=session_id,
        tmp_dir=work_dir / session_id,
        db_path=work_dir / f"{session_id}_{config.DATABASE_NAME}",
    )


def get_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError as e:
        logging.warning(f"Could not determine hostname: {e}")
        return ""


def get_ip() -> str:
    """
    Returns a non-loopback IPv4 address of this host, or "unknown".
    Connecting a UDP socket sends no packets; it only makes the kernel pick
    the outbound interface.
    """
    candidates = []
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("10.255.255.255", 1))
            candidates.append(s.getsockname()[0])
    except OSError:
        pass  # no route; fall back to name resolution

    try:
        candidates.extend(socket.gethostbyname_ex(socket.gethostname())[2])
    except OSError as e:
        logging.debug(f"Hostname resolution failed: {e}")

    for addr in candidates:
        if not addr.startswith("127."):
            return addr

    logging.warning("Could not determine a non-loopback IPv4 address")
    return config.UNKNOWN_IP


def random_suffix(n: int = config.SHARD_PREFIX_LEN) -> str:
    """Random ASCII letters used to keep shard names unique."""
    return "".join(random.choices(string.ascii_letters, k=n))
