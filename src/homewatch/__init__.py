"""
Home Directory Watcher Package

An inotify based watcher that monitors every user's files directory and
turns kernel change notifications into a minimal set of rescan requests
for the indexer.

Features:
- Recursive watch registration for deep directory trees
- Directory rename tracking via moved-from/moved-to cookie pairing
- Per-batch deduplication and pruning of rescan targets under deleted directories
- Per-user dispatch with explicit scan outcomes
- SQLite scan request queue shared with the indexer
- Bounded poll timeout and cooperative shutdown
"""

from .models import (
    EventKind,
    RawEvent,
    WatchEntry,
    PendingMove,
    User,
    UserRoot,
    ScanTarget,
    ScanOutcome,
    ScanResult,
    DispatchReport,
    classify,
)

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    WatchTreeError,
    UnknownWatchDescriptorError,
    RootError,
    RootNotFoundError,
    RootAlreadyExistsError,
    QueueError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
)

from .watch_tree import WatchTree, is_within
from .event_processor import EventTranslator, MoveCorrelator, RescanSet
from .root_manager import RootManager
from .users import BaseUserProvider, StaticUserProvider, DataDirUserProvider
from .connection import BaseConnection, reconnect
from .queue import ScanQueue
from .scanner import BaseScanner, QueueScanner, ScanDispatcher, queue_scanner_factory
from .process import LoopState, WatcherProcess


__all__ = [
    # Models
    "EventKind",
    "RawEvent",
    "WatchEntry",
    "PendingMove",
    "User",
    "UserRoot",
    "ScanTarget",
    "ScanOutcome",
    "ScanResult",
    "DispatchReport",
    "classify",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "WatchTreeError",
    "UnknownWatchDescriptorError",
    "RootError",
    "RootNotFoundError",
    "RootAlreadyExistsError",
    "QueueError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    # Components
    "WatchTree",
    "is_within",
    "EventTranslator",
    "MoveCorrelator",
    "RescanSet",
    "RootManager",
    "BaseUserProvider",
    "StaticUserProvider",
    "DataDirUserProvider",
    "BaseConnection",
    "reconnect",
    "ScanQueue",
    "BaseScanner",
    "QueueScanner",
    "ScanDispatcher",
    "queue_scanner_factory",
    # Main Process
    "LoopState",
    "WatcherProcess",
]

__version__ = "0.1.0"
