import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from tqdm import tqdm

from .. import config
from ..exceptions import DatabaseError, ShardError
from ..models import FileRecord
from .ops import DBOperations


@dataclass
class LoadStats:
    shards_loaded: int = 0
    shards_skipped: int = 0
    records_read: int = 0
    rows_inserted: int = 0


def discover_shards(tmp_dir: Path) -> List[Path]:
    """Finds every shard in a session temp dir."""
    if not tmp_dir.is_dir():
        return []
    return sorted(tmp_dir.glob(f"*{config.SHARD_SUFFIX}"))


def read_shard(path: Path) -> List[FileRecord]:
    """
    Parses a whole shard before anything is inserted, so a corrupt shard
    is rejected as a unit.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ShardError(f"Cannot read shard {path}: {e}") from e

    if not isinstance(data, list):
        raise ShardError(f"Shard {path} is not a JSON array")

    try:
        return [FileRecord.from_dict(item) for item in data]
    except (TypeError, AttributeError) as e:
        raise ShardError(f"Shard {path} holds malformed records: {e}") from e


class ShardLoader:
    """
    Bulk-loads shards into the store, one transaction per shard.

    Inserts are insert-if-absent, so loading a shard twice, or two shards
    describing the same file, leaves the same rows as loading the union once.
    Nothing is retried: a corrupt shard or failed commit is logged and the
    next shard is attempted.
    """

    def __init__(self, db_ops: DBOperations):
        self.db = db_ops

    def load(self, shard_paths: Iterable[Path], progress: bool = False) -> LoadStats:
        stats = LoadStats()
        shard_paths = list(shard_paths)
        logging.info(f"Loading {len(shard_paths)} shards into the database ...")

        for path in tqdm(shard_paths, desc="Loading shards", disable=not progress):
            try:
                records = read_shard(path)
            except ShardError as e:
                logging.error(f"Skipping shard: {e}")
                stats.shards_skipped += 1
                continue

            try:
                inserted = self.db.insert_if_absent(records)
            except DatabaseError as e:
                logging.error(f"Shard {path} not applied: {e}")
                stats.shards_skipped += 1
                continue

            logging.debug(f"{path}: {inserted}/{len(records)} rows inserted")
            stats.shards_loaded += 1
            stats.records_read += len(records)
            stats.rows_inserted += inserted

        logging.info(f"Committed {stats.rows_inserted} rows from {stats.shards_loaded} shards "
                     f"({stats.shards_skipped} skipped).")
        return stats
