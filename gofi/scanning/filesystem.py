import os
import logging
from pathlib import Path
from typing import Iterator, Optional

from ..exceptions import ScanRootError
from ..models import FileRecord
from ..session import SessionContext
from .hasher import FileFingerprinter, format_mtime


class DiskWalker:
    """
    Recursive walker that turns every regular file under the session root
    into a FileRecord. Directories are recorded only when include_dirs is set.

    Per-entry failures (permission denied, broken symlink, vanished file)
    bump error_count and are skipped; only an unreadable root is fatal.
    """

    def __init__(self,
                 session: SessionContext,
                 fingerprinter: Optional[FileFingerprinter] = None,
                 include_dirs: bool = False):
        self.session = session
        self.fingerprinter = fingerprinter or FileFingerprinter()
        self.include_dirs = include_dirs

        # Session artifacts may live under the scan root; never index them
        self._skip = {os.path.abspath(session.tmp_dir), os.path.abspath(session.db_path)}

        self.error_count = 0
        self.file_count = 0
        self.dir_count = 0

    def scan(self) -> Iterator[FileRecord]:
        """Generator that yields FileRecords. Order is not guaranteed."""
        root = self.session.root_dir
        try:
            with os.scandir(root) as it:
                root_entries = list(it)
        except OSError as e:
            raise ScanRootError(f"Cannot read scan root {root}: {e}") from e

        logging.info(f"Scanning {root} ...")
        stack = [root_entries]
        while stack:
            entries = stack.pop()
            for entry in entries:
                if os.path.abspath(entry.path) in self._skip:
                    continue
                if entry.is_dir(follow_symlinks=False):
                    children = self._list_dir(entry.path)
                    if children is None:
                        continue
                    stack.append(children)
                    if self.include_dirs:
                        record = self._dir_record(entry)
                        if record:
                            self.dir_count += 1
                            yield record
                elif entry.is_file(follow_symlinks=False):
                    record = self._file_record(entry)
                    if record:
                        self.file_count += 1
                        yield record
                elif entry.is_symlink():
                    self._check_symlink(entry)

        logging.info(f"Scan complete. {self.file_count} files, {self.dir_count} dirs, {self.error_count} errors.")

    def _list_dir(self, path: str) -> Optional[list]:
        try:
            with os.scandir(path) as it:
                return list(it)
        except OSError as e:
            self.error_count += 1
            logging.warning(f"Cannot read directory {path}: {e}")
            return None

    def _file_record(self, entry: os.DirEntry) -> Optional[FileRecord]:
        try:
            stat_result = entry.stat(follow_symlinks=False)
            fp = self.fingerprinter.fingerprint(Path(entry.path), stat_result)
        except OSError as e:
            self.error_count += 1
            logging.error(f"Failed to scan {entry.path}: {e}")
            return None

        logging.debug(f"{entry.path}: {fp.type} {fp.mime} {fp.digest}")
        return self._record(entry, size=fp.size, isdir=0,
                            file_type=fp.type, file_mime=fp.mime,
                            file_hash=fp.digest, modified=fp.modified)

    def _dir_record(self, entry: os.DirEntry) -> Optional[FileRecord]:
        try:
            stat_result = entry.stat(follow_symlinks=False)
        except OSError as e:
            self.error_count += 1
            logging.error(f"Failed to stat {entry.path}: {e}")
            return None

        return self._record(entry, size=stat_result.st_size, isdir=1,
                            modified=format_mtime(stat_result.st_mtime))

    def _check_symlink(self, entry: os.DirEntry):
        """Symlinks are not followed; a dangling one counts as an error."""
        try:
            os.stat(entry.path)
        except OSError as e:
            self.error_count += 1
            logging.warning(f"Broken symlink {entry.path}: {e}")

    def _record(self, entry: os.DirEntry, **kwargs) -> FileRecord:
        parent = os.path.dirname(entry.path)
        return FileRecord(
            name=entry.name,
            path=os.path.join(parent, ""),
            machine=self.session.hostname,
            ip=self.session.ip,
            on_external_source=self.session.on_external_source,
            external_name=self.session.external_name,
            **kwargs,
        )
