import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import filetype
import xxhash

from .. import config
from ..exceptions import FingerprintError

# libmagic is a system library; without it MIME labels stay empty
try:
    import magic
except ImportError:
    magic = None


@dataclass(frozen=True)
class Fingerprint:
    type: str
    mime: str
    digest: str
    size: int
    modified: str

    @property
    def too_large(self) -> bool:
        return self.digest == config.TOO_LARGE


def format_mtime(mtime: float) -> str:
    """Local time with UTC offset, e.g. '2024-05-01 12:30:00.123456+02:00'."""
    return str(datetime.fromtimestamp(mtime).astimezone())


class FileFingerprinter:
    """
    Computes (type, MIME, digest, size, modified) for a regular file.

    The digest is xxh128 seeded from the fixed deployment key. It is a
    content fingerprint, comparable across machines, not a security boundary.
    """

    def __init__(self, key_hex: str = config.HASH_KEY_HEX):
        key = bytes.fromhex(key_hex)
        self.seed = int.from_bytes(key[:8], "little")

    def fingerprint(self, path: Path, stat_result: Optional[os.stat_result] = None) -> Fingerprint:
        """
        Strategy:
        1. size >= SIZE_CEILING -> sentinel labels, no content read.
        2. Otherwise stream the whole file through the hash, keeping the
           leading bytes for type/MIME sniffing.
        3. Unreadable content -> logged, sentinel labels.

        Raises OSError only if the file cannot be stat'ed at all.
        """
        if stat_result is None:
            stat_result = path.stat()

        size = stat_result.st_size
        modified = format_mtime(stat_result.st_mtime)

        if size >= config.SIZE_CEILING:
            logging.info(f"{path} is over {config.SIZE_CEILING} bytes; skipping content")
            return self._sentinel(size, modified)

        try:
            digest, head = self._hash_and_head(path)
        except FingerprintError as e:
            logging.warning(str(e))
            return self._sentinel(size, modified)

        file_type, mime = self.detect(head)
        return Fingerprint(file_type, mime, digest, size, modified)

    def hash_file(self, path: Path) -> str:
        digest, _ = self._hash_and_head(path)
        return digest

    def detect(self, head: bytes) -> Tuple[str, str]:
        """Magic-byte type label and content-sniffed MIME for a leading buffer."""
        kind = filetype.guess(head)
        file_type = kind.extension if kind is not None else config.UNKNOWN_TYPE
        if kind is None:
            logging.debug("Unknown file type")
        return file_type, self._sniff_mime(head)

    def _hash_and_head(self, path: Path) -> Tuple[str, bytes]:
        h = xxhash.xxh128(seed=self.seed)
        head = b""
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(config.HASH_CHUNK_SIZE):
                    if len(head) < config.SNIFF_BYTES:
                        head += chunk[:config.SNIFF_BYTES - len(head)]
                    h.update(chunk)
        except OSError as e:
            raise FingerprintError(f"Failed to read {path}: {e}") from e
        return h.hexdigest(), head

    def _sniff_mime(self, head: bytes) -> str:
        if magic is None:
            return ""
        try:
            return magic.from_buffer(head, mime=True)
        except Exception as e:
            logging.debug(f"MIME sniffing failed: {e}")
            return ""

    @staticmethod
    def _sentinel(size: int, modified: str) -> Fingerprint:
        return Fingerprint(config.TOO_LARGE, config.TOO_LARGE, config.TOO_LARGE, size, modified)
