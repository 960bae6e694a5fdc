import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .core import GofiApp
from .exceptions import GofiError
from .session import new_session


def setup_logging(log_file: Optional[Path], verbose: bool):
    """Sets up logging to both console and a log file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )


def positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {n}")
    return n


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="gofi: index a directory tree and ship it to a gofi server")

    p.add_argument("--target-url", default=config.DEFAULT_TARGET_URL,
                   help="host:port where the gofi server is listening")
    p.add_argument("--dry-run", action="store_true",
                   help="Print the records instead of storing and sending them")
    p.add_argument("--external-name", default="",
                   help="Label for an external source; empty means not external")
    p.add_argument("--root-dir", type=Path, default=Path("."),
                   help="Directory to start scanning in (searched recursively)")
    p.add_argument("--insert-limit", type=positive_int, default=config.DEFAULT_BATCH_LIMIT,
                   help="Records per shard file")
    p.add_argument("--hostname", default=None,
                   help="Hostname to report (default: this machine's)")
    p.add_argument("--work-dir", type=Path, default=None,
                   help="Where the session database and shard dir are created (default: cwd)")
    p.add_argument("--include-dirs", action="store_true",
                   help="Record directories as well as files")
    p.add_argument("--pad-final-chunk", action="store_true",
                   help="Always send the last payload chunk as a full buffer (legacy receivers)")
    p.add_argument("--log-file", type=Path, default=Path(config.LOG_FILE),
                   help="Log file to append to")
    p.add_argument("--progress", action="store_true", help="Show progress bars")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    logging.info("=== gofi client started ===")

    session = new_session(
        root_dir=args.root_dir.resolve(),
        work_dir=args.work_dir,
        hostname=args.hostname,
        external_name=args.external_name,
        batch_limit=args.insert_limit,
    )
    logging.info(f"Session: {session.session_id}")
    logging.info(f"Root:    {session.root_dir}")
    logging.info(f"Machine: {session.hostname} ({session.ip})")

    app = GofiApp(session)

    try:
        app.run(
            target_url=args.target_url,
            dry_run=args.dry_run,
            include_dirs=args.include_dirs,
            pad_final_chunk=args.pad_final_chunk,
            progress=args.progress,
        )
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except GofiError as e:
        logging.error(f"Run failed: {e}")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during run.")
        sys.exit(1)


if __name__ == "__main__":
    main()
