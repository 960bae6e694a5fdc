import json
import logging
from pathlib import Path
from typing import Iterable, List

from .. import config
from ..models import FileRecord
from ..session import SessionContext, random_suffix


class ShardBatcher:
    """
    Accumulates records and spills them to JSON shard files under the
    session temp dir once batch_limit records are held, so peak memory is
    bounded by the limit rather than by the size of the tree.

    Call flush() after the last add() or the tail batch is lost.
    """

    def __init__(self, session: SessionContext):
        self.session = session
        self.limit = session.batch_limit
        self.records: List[FileRecord] = []
        self.shard_count = 0
        self.failed_shards = 0
        self.total_written = 0
        self.shard_paths: List[Path] = []

    def add(self, record: FileRecord):
        self.records.append(record)
        if len(self.records) >= self.limit:
            self._write_shard()

    def add_all(self, records: Iterable[FileRecord]):
        for record in records:
            self.add(record)

    def flush(self) -> List[Path]:
        """Writes any remaining records as a final shard. Returns all shard paths."""
        if self.records:
            self._write_shard()
        logging.info(f"{self.total_written} records written to {len(self.shard_paths)} shards.")
        return list(self.shard_paths)

    def _write_shard(self):
        shard_path = self.session.tmp_dir / f"{random_suffix()}{self.shard_count}{config.SHARD_SUFFIX}"
        payload = json.dumps([r.to_dict() for r in self.records])

        # Counter advances even on failure so a retry never reuses the name
        self.shard_count += 1
        try:
            self.session.tmp_dir.mkdir(parents=True, exist_ok=True)
            shard_path.write_text(payload, encoding="utf-8")
        except OSError as e:
            self.failed_shards += 1
            logging.error(f"Failed to write shard {shard_path}, dropping {len(self.records)} records: {e}")
        else:
            logging.info(f"{len(self.records)} files written to {shard_path}")
            self.total_written += len(self.records)
            self.shard_paths.append(shard_path)
        self.records = []
