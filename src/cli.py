#!/usr/bin/env python3
"""
CLI for the home directory watcher.

Usage:
    python -m src.cli watch --data-dir /srv/data --db homewatch.db
    python -m src.cli users --data-dir /srv/data
    python -m src.cli queue --db homewatch.db
"""

import argparse
import logging
import signal
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load .env from project root
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    load_dotenv()

from src.homewatch import (
    DataDirUserProvider,
    LoopState,
    RootManager,
    ScanQueue,
    WatcherConfig,
    WatcherProcess,
)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")


class GracefulShutdown:
    """Stop the watcher on SIGINT/SIGTERM."""

    def __init__(self, watcher: WatcherProcess):
        self.watcher = watcher
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.watcher.stop()


def build_config(args) -> WatcherConfig:
    """Environment defaults, overridden by explicit flags."""
    config = WatcherConfig.from_env()
    if getattr(args, "data_dir", None):
        config.data_dir = Path(args.data_dir)
    if getattr(args, "files_subdir", None) is not None:
        config.files_subdir = args.files_subdir
    if getattr(args, "db", None):
        config.db_path = Path(args.db)
    if getattr(args, "timeout", None) is not None:
        config.poll_timeout_s = args.timeout
    if getattr(args, "reconnect_interval", None) is not None:
        config.reconnect_interval_s = args.reconnect_interval
    return config


def cmd_watch(args):
    """Run the watcher until interrupted."""
    config = build_config(args)

    if not config.data_dir.is_dir():
        logger.error(f"Data directory does not exist: {config.data_dir}")
        sys.exit(1)

    config.db_path = config.db_path.resolve()
    config.db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Starting watcher...")
    logger.info(f"Data directory: {config.data_dir}")
    logger.info(f"Database: {config.db_path}")

    with WatcherProcess(config=config) as watcher:
        GracefulShutdown(watcher)
        watcher.open()
        if watcher.state is LoopState.STOPPED:
            return
        if not watcher.get_roots():
            logger.warning("No users found, nothing to watch")
        logger.info("Press Ctrl+C to stop")
        watcher.start()


def cmd_users(args):
    """List discovered users and the directory watched for each."""
    config = build_config(args)
    users = DataDirUserProvider(config.data_dir, config.files_subdir).list_users()
    roots = RootManager.from_users(users, config)

    if not users:
        print(f"No users found in {config.data_dir}")
        return

    for root in roots:
        print(f"{root.identity:<24} {root.home_prefix}")
    skipped = len(users) - len(roots)
    if skipped:
        print(f"({skipped} user(s) skipped)")


def cmd_queue(args):
    """Show pending scan requests."""
    config = build_config(args)

    if not config.db_path.exists():
        print(f"Database not found: {config.db_path}")
        sys.exit(1)

    with ScanQueue(config.db_path) as queue:
        print(f"Pending scan requests: {queue.size()}")
        for item_id, item in queue.peek(limit=args.limit):
            path = f"{item['user']}/{item['path']}" if item["path"] else item["user"]
            print(f"  #{item_id} {path}")


def main():
    parser = argparse.ArgumentParser(
        description="Watch user home directories and queue rescans for the indexer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch every user under /srv/data (each user has a files/ directory)
  python -m src.cli watch --data-dir /srv/data --db ./data/homewatch.db

  # Watch plain home directories
  python -m src.cli watch --data-dir /home --files-subdir ""

  # List the users that would be watched
  python -m src.cli users --data-dir /srv/data

  # Inspect the scan request queue
  python -m src.cli queue --db ./data/homewatch.db
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Run the watcher")
    watch_parser.add_argument("--data-dir", help="Directory holding one home per user (or HOMEWATCH_DATA_DIR)")
    watch_parser.add_argument("--files-subdir", default=None, help="Subdirectory of each home to watch (default: files)")
    watch_parser.add_argument("--db", help="Scan queue database path (or HOMEWATCH_DB_PATH)")
    watch_parser.add_argument("--timeout", type=float, default=None, help="Poll timeout in seconds (default: 60)")
    watch_parser.add_argument("--reconnect-interval", type=float, default=None,
                              help="Seconds between database reconnect attempts (default: 60)")
    watch_parser.set_defaults(func=cmd_watch)

    # Users command
    users_parser = subparsers.add_parser("users", help="List users and watched directories")
    users_parser.add_argument("--data-dir", help="Directory holding one home per user (or HOMEWATCH_DATA_DIR)")
    users_parser.add_argument("--files-subdir", default=None, help="Subdirectory of each home to watch (default: files)")
    users_parser.set_defaults(func=cmd_users)

    # Queue command
    queue_parser = subparsers.add_parser("queue", help="Show pending scan requests")
    queue_parser.add_argument("--db", help="Scan queue database path (or HOMEWATCH_DB_PATH)")
    queue_parser.add_argument("--limit", type=int, default=20, help="Number of requests to show")
    queue_parser.set_defaults(func=cmd_queue)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
