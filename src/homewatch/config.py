"""Configuration for the homewatch package."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from inotify_simple import flags


@dataclass
class WatcherConfig:
    """
    Configuration options for the home directory watcher.

    Attributes:
        db_path: Path to the SQLite database holding the scan request queue
        data_dir: Directory whose subdirectories are the user homes
        files_subdir: Subdirectory of each home that is watched ("" for the home itself)
        poll_timeout_s: Maximum time the event loop blocks before waking up
        reconnect_interval_s: Sleep between failed database reconnect attempts
        follow_symlinks: Whether to descend into symlinked directories
    """
    db_path: Path = field(default_factory=lambda: Path("homewatch.db"))
    data_dir: Path = field(default_factory=lambda: Path("/home"))
    files_subdir: str = "files"
    poll_timeout_s: float = 60.0
    reconnect_interval_s: float = 60.0
    follow_symlinks: bool = False

    def __post_init__(self):
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)

    @property
    def watch_mask(self) -> int:
        """
        Inotify mask registered on every watched directory.

        IN_MODIFY fires on every write() while IN_CLOSE_WRITE fires once,
        when the changed file is closed.
        """
        return (
            flags.CLOSE_WRITE
            | flags.CREATE
            | flags.MOVED_FROM
            | flags.MOVED_TO
            | flags.DELETE
        )

    @classmethod
    def from_env(cls) -> "WatcherConfig":
        """Create a config, taking overrides from HOMEWATCH_* environment variables."""
        config = cls()
        if os.environ.get("HOMEWATCH_DB_PATH"):
            config.db_path = Path(os.environ["HOMEWATCH_DB_PATH"])
        if os.environ.get("HOMEWATCH_DATA_DIR"):
            config.data_dir = Path(os.environ["HOMEWATCH_DATA_DIR"])
        if "HOMEWATCH_FILES_SUBDIR" in os.environ:
            config.files_subdir = os.environ["HOMEWATCH_FILES_SUBDIR"]
        if os.environ.get("HOMEWATCH_POLL_TIMEOUT"):
            config.poll_timeout_s = float(os.environ["HOMEWATCH_POLL_TIMEOUT"])
        if os.environ.get("HOMEWATCH_RECONNECT_INTERVAL"):
            config.reconnect_interval_s = float(os.environ["HOMEWATCH_RECONNECT_INTERVAL"])
        return config

    def watch_root_for(self, home: Path) -> Path:
        """Return the directory watched for a user home."""
        if self.files_subdir:
            return home / self.files_subdir
        return home
