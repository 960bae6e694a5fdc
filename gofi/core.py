import logging
import shutil
from dataclasses import dataclass
from typing import Optional

from .database.db import DBManager
from .database.loader import ShardLoader
from .database.ops import DBOperations
from .scanning.batcher import ShardBatcher
from .scanning.filesystem import DiskWalker
from .session import SessionContext
from .transport.transmitter import FileTransmitter, TransferResult


@dataclass
class RunSummary:
    files: int = 0
    dirs: int = 0
    walk_errors: int = 0
    shards: int = 0
    rows: int = 0
    transfer: Optional[TransferResult] = None


class GofiApp:
    def __init__(self, session: SessionContext):
        self.session = session

    def run(self,
            target_url: str,
            dry_run: bool = False,
            include_dirs: bool = False,
            pad_final_chunk: bool = False,
            progress: bool = False) -> RunSummary:
        """
        Executes one full inventory run. Each stage finishes before the next:
        1. Walk & Fingerprint -> Batch to shards
        2. Load shards into the session database
        3. Transmit the database file
        4. Remove the database file and shard dir

        On a transmission failure the artifacts are left in place.
        """
        summary = RunSummary()
        walker = DiskWalker(self.session, include_dirs=include_dirs)

        if dry_run:
            for record in walker.scan():
                logging.info(f"[DRY RUN] {record.to_dict()}")
            self._collect_walk(summary, walker)
            return summary

        # Store is created up front so an unusable work dir fails before the walk
        with DBManager(self.session.db_path) as conn:
            # --- Step 1: Scanning ---
            batcher = ShardBatcher(self.session)
            batcher.add_all(walker.scan())
            shard_paths = batcher.flush()
            self._collect_walk(summary, walker)
            summary.shards = len(shard_paths)

            # --- Step 2: Loading ---
            db_ops = DBOperations(conn)
            ShardLoader(db_ops).load(shard_paths, progress=progress)
            summary.rows = db_ops.count_rows()

        # --- Step 3: Transmission ---
        transmitter = FileTransmitter(target_url, pad_final_chunk=pad_final_chunk, progress=progress)
        size = self.session.db_path.stat().st_size
        with self.session.db_path.open("rb") as f:
            summary.transfer = transmitter.send_file(f, size, self.session.transfer_name)

        # --- Step 4: Cleanup ---
        self.cleanup()

        logging.info(f"Run complete: {summary.files} files, {summary.dirs} dirs, "
                     f"{summary.walk_errors} errors, {summary.shards} shards, {summary.rows} rows.")
        return summary

    def cleanup(self):
        """Removes the session database file and shard directory."""
        try:
            self.session.db_path.unlink(missing_ok=True)
        except OSError as e:
            logging.warning(f"Could not remove {self.session.db_path}: {e}")
        shutil.rmtree(self.session.tmp_dir, ignore_errors=True)

    @staticmethod
    def _collect_walk(summary: RunSummary, walker: DiskWalker):
        summary.files = walker.file_count
        summary.dirs = walker.dir_count
        summary.walk_errors = walker.error_count
