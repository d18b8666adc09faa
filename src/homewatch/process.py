"""Main watcher event loop."""

import logging
import os
import select
import time
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from inotify_simple import INotify

from .config import WatcherConfig
from .connection import BaseConnection, reconnect
from .event_processor import EventTranslator, MoveCorrelator
from .exceptions import (
    WatcherAlreadyRunningError,
    WatcherError,
    WatcherNotRunningError,
)
from .models import DispatchReport, RawEvent, UserRoot
from .queue import ScanQueue
from .root_manager import RootManager
from .scanner import BaseScanner, ScanDispatcher, ScannerFactory, queue_scanner_factory
from .users import BaseUserProvider, DataDirUserProvider
from .watch_tree import WatchTree

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Lifecycle of the event loop. STOPPED is terminal."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class WatcherProcess:
    """
    Single-threaded inotify event loop.

    Blocks on the inotify descriptor with a bounded timeout, and for each
    wake drains the available events, translates them into rescan targets
    and hands those to the users' scanners before blocking again.
    """

    def __init__(
        self,
        config: Optional[WatcherConfig] = None,
        user_provider: Optional[BaseUserProvider] = None,
        connection: Optional[BaseConnection] = None,
        scanner_factory: Optional[ScannerFactory] = None,
        inotify=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the watcher process.

        Args:
            config: Watcher configuration
            user_provider: User enumeration (defaults to the config's data_dir)
            connection: Database connection (defaults to a ScanQueue on db_path)
            scanner_factory: Builds a scanner per user (defaults to queue scanners)
            inotify: Inotify object to use instead of opening a new one
            sleep: Sleep function used between reconnect attempts
        """
        self.config = config or WatcherConfig()
        self.user_provider = user_provider or DataDirUserProvider(
            self.config.data_dir, self.config.files_subdir
        )
        self.connection = connection or ScanQueue(self.config.db_path)
        self.scanner_factory = scanner_factory or queue_scanner_factory(self.config.files_subdir)

        self._inotify = inotify
        self._sleep = sleep
        self._state = LoopState.IDLE
        self._opening = False
        self._wake_r: Optional[int] = None
        self._wake_w: Optional[int] = None

        self._root_manager = RootManager()
        self._watch_tree: Optional[WatchTree] = None
        self._translator: Optional[EventTranslator] = None
        self._dispatcher = ScanDispatcher(self._root_manager)

    def open(self) -> None:
        """
        Open the inotify handle and watch every user's subtree.

        Called by start() if needed; calling it twice is a no-op. A stop()
        arriving during the walk ends it early and releases everything.
        """
        if self._watch_tree is not None:
            return
        if self._state is not LoopState.IDLE:
            raise WatcherError("Watcher has been stopped")

        self._opening = True
        try:
            self._open()
        finally:
            self._opening = False

        if self._state is LoopState.STOPPING:
            logger.info("Stop requested during startup")
            self._shutdown()

    def _open(self) -> None:
        if self._inotify is None:
            self._inotify = INotify()
        self._wake_r, self._wake_w = os.pipe()
        os.set_blocking(self._wake_r, False)
        os.set_blocking(self._wake_w, False)

        self._watch_tree = WatchTree(
            self._inotify,
            self.config.watch_mask,
            follow_symlinks=self.config.follow_symlinks,
        )
        self._translator = EventTranslator(self._watch_tree, MoveCorrelator(self._watch_tree))

        try:
            self.connection.connect()
        except Exception as e:
            logger.warning(f"Database not reachable at startup: {e}")

        self._root_manager = RootManager.from_users(self.user_provider.list_users(), self.config)
        self._dispatcher = ScanDispatcher(self._root_manager)

        for root in self._root_manager:
            if self._stop_requested():
                return
            failed = self._watch_tree.register_subtree(root.home_prefix, cancelled=self._stop_requested)
            if failed:
                logger.warning(
                    f"Could not watch {len(failed)} director(ies) of {root.identity}: "
                    + ", ".join(str(p) for p in failed[:5])
                )
            logger.info(f"Watching {root.home_prefix} for {root.identity}")

        logger.info(f"{len(self._watch_tree)} director(ies) watched for {len(self._root_manager)} user(s)")

    def _stop_requested(self) -> bool:
        return self._state is LoopState.STOPPING

    def start(self) -> None:
        """
        Run the event loop (blocking) until stop() is called.

        Resources are released when the loop ends, including when open()
        fails or is interrupted by stop().

        Raises:
            WatcherAlreadyRunningError: If already running
            WatcherError: If the watcher has already been stopped
        """
        if self._state is LoopState.RUNNING:
            raise WatcherAlreadyRunningError("Watcher is already running")
        if self._state is not LoopState.IDLE:
            raise WatcherError("Watcher has been stopped")

        try:
            self.open()
            if self._state is LoopState.IDLE:
                self._state = LoopState.RUNNING
                logger.info("Watcher started")

            while self._state is LoopState.RUNNING:
                self.run_once(self.config.poll_timeout_s)
        finally:
            self._shutdown()

    def run_once(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for one wake of the loop and process what arrived.

        Args:
            timeout: Seconds to block at most (None blocks indefinitely)

        Returns:
            True if a batch of events was processed
        """
        if self._watch_tree is None:
            raise WatcherNotRunningError("Watcher is not open")

        inotify_fd = self._inotify.fileno()
        readable, _, _ = select.select([inotify_fd, self._wake_r], [], [], timeout)

        if self._wake_r in readable:
            self._drain_wake_pipe()
        if self._state in (LoopState.STOPPING, LoopState.STOPPED):
            return False
        if inotify_fd not in readable:
            return False

        events = [RawEvent.from_inotify(event) for event in self._inotify.read(timeout=0)]
        if not events:
            return False

        self.process_batch(events)
        return True

    def process_batch(self, events: Iterable[RawEvent]) -> DispatchReport:
        """
        Process one batch of raw events synchronously.

        Re-validates the database connection, rebuilds the scanner for each
        user, translates the events and dispatches the rescan targets.

        Args:
            events: Raw events of the batch, in arrival order

        Returns:
            Report of the dispatched scans
        """
        if self._translator is None:
            raise WatcherNotRunningError("Watcher is not open")

        events = list(events)
        reconnect(self.connection, self.config.reconnect_interval_s, self._sleep)
        scanners = self._build_scanners()

        targets = self._translator.translate(events)
        logger.debug(f"{len(events)} event(s) -> {len(targets)} rescan target(s)")

        return self._dispatcher.dispatch(targets, scanners)

    def _build_scanners(self) -> Dict[str, BaseScanner]:
        scanners = {}
        for user in self.user_provider.list_users():
            try:
                scanners[user.identity] = self.scanner_factory(user, self.connection)
            except Exception as e:
                logger.error(f"Cannot create scanner for {user.identity}: {e}")
        return scanners

    def stop(self) -> None:
        """
        Request the loop to stop.

        Safe to call from a signal handler or another thread; the loop
        notices at its next wake. During open() the request is only
        recorded; open() ends its walk and releases the resources itself.
        Repeated calls are no-ops.
        """
        if self._state is LoopState.RUNNING:
            self._state = LoopState.STOPPING
            self._wake()
        elif self._state is LoopState.IDLE:
            self._state = LoopState.STOPPING
            if not self._opening:
                self._shutdown()

    def _wake(self) -> None:
        if self._wake_w is None:
            return
        try:
            os.write(self._wake_w, b"\0")
        except BlockingIOError:
            pass

    def _drain_wake_pipe(self) -> None:
        try:
            while os.read(self._wake_r, 512):
                pass
        except BlockingIOError:
            pass

    def _shutdown(self) -> None:
        """Release the inotify handle, the wake pipe and the connection."""
        if self._state is LoopState.STOPPED:
            return

        if self._inotify is not None:
            self._inotify.close()
        for fd in (self._wake_r, self._wake_w):
            if fd is not None:
                os.close(fd)
        self._wake_r = self._wake_w = None

        if self._watch_tree is not None:
            self._watch_tree.clear()

        try:
            self.connection.close()
        except Exception as e:
            logger.info(f"Error while disconnecting from database: {e}")

        self._state = LoopState.STOPPED
        logger.info("Watcher stopped")

    def get_roots(self) -> List[UserRoot]:
        """Get the watched user roots."""
        return list(self._root_manager)

    @property
    def watch_tree(self) -> Optional[WatchTree]:
        return self._watch_tree

    @property
    def watch_count(self) -> int:
        return len(self._watch_tree) if self._watch_tree is not None else 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is LoopState.RUNNING

    def close(self) -> None:
        """Stop the watcher and release all resources."""
        self.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
