"""Event translation with move correlation and rescan deduplication."""

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from .exceptions import UnknownWatchDescriptorError
from .models import EventKind, PendingMove, RawEvent
from .watch_tree import WatchTree, is_within

logger = logging.getLogger(__name__)


class MoveCorrelator:
    """
    Pairs IN_MOVED_FROM / IN_MOVED_TO directory events by cookie.

    Once both halves of a rename are known the watch entries under the old
    path are re-rooted at the new one. A half whose partner never arrives
    (moved out of or into the watched tree) stays pending.
    """

    def __init__(self, watch_tree: WatchTree):
        """
        Initialize the move correlator.

        Args:
            watch_tree: Watch table to rewrite when a move completes
        """
        self.watch_tree = watch_tree
        self._pending: Dict[int, PendingMove] = {}

    def moved_from(self, cookie: int, path: Path) -> bool:
        """
        Record the source side of a directory move.

        Returns:
            True if this completed the move
        """
        self._get_or_create(cookie).source = path
        return self._complete(cookie)

    def moved_to(self, cookie: int, path: Path) -> bool:
        """
        Record the destination side of a directory move.

        Returns:
            True if this completed the move
        """
        self._get_or_create(cookie).destination = path
        return self._complete(cookie)

    def _get_or_create(self, cookie: int) -> PendingMove:
        if cookie not in self._pending:
            self._pending[cookie] = PendingMove(cookie)
        return self._pending[cookie]

    def _complete(self, cookie: int) -> bool:
        move = self._pending[cookie]
        if not move.is_complete:
            return False

        count = self.watch_tree.rewrite_prefix(move.source, move.destination)
        logger.info(f"Directory moved: {move.source} -> {move.destination} ({count} watch(es))")
        del self._pending[cookie]
        return True

    def pending(self, cookie: int) -> Optional[PendingMove]:
        return self._pending.get(cookie)

    def clear(self) -> None:
        """Drop all incomplete moves."""
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, cookie: int) -> bool:
        return cookie in self._pending


class RescanSet:
    """Insertion-ordered set of absolute paths queued for a rescan."""

    def __init__(self):
        self._paths: Dict[Path, None] = {}

    def add(self, path: Path) -> None:
        self._paths[path] = None

    def discard_within(self, base: Path) -> int:
        """
        Drop base and every queued path below it.

        Returns:
            Number of paths dropped
        """
        doomed = [path for path in self._paths if is_within(path, base)]
        for path in doomed:
            del self._paths[path]
        return len(doomed)

    def drain(self) -> List[Path]:
        """Return all queued paths and empty the set."""
        paths = list(self._paths)
        self._paths.clear()
        return paths

    def clear(self) -> None:
        self._paths.clear()

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._paths))

    def __contains__(self, path: Path) -> bool:
        return path in self._paths


class EventTranslator:
    """
    Turns a batch of raw inotify events into rescan targets.

    Keeps the watch table and pending moves in step with the tree as a
    side effect.
    """

    def __init__(self, watch_tree: WatchTree, correlator: Optional[MoveCorrelator] = None):
        """
        Initialize the event translator.

        Args:
            watch_tree: Watch table shared with the event loop
            correlator: Move correlator (created on watch_tree if omitted)
        """
        self.watch_tree = watch_tree
        self.correlator = correlator or MoveCorrelator(watch_tree)

    def translate(self, events: Iterable[RawEvent]) -> List[Path]:
        """
        Process one batch of events in arrival order.

        Args:
            events: Raw events drained from the kernel queue

        Returns:
            Deduplicated rescan targets for the batch
        """
        rescan = RescanSet()
        for event in events:
            self.apply(event, rescan)
        return rescan.drain()

    def apply(self, event: RawEvent, rescan: RescanSet) -> None:
        """Apply a single event to the watch state and the batch's rescan set."""
        kind = event.kind

        if kind is EventKind.OVERFLOW:
            logger.warning("Inotify event queue overflowed, some changes were lost")
            return

        if kind is EventKind.IGNORED:
            path = self.watch_tree.forget_descriptor(event.wd)
            if path is not None:
                logger.debug(f"Watch on {path} removed by the kernel")
            return

        if kind is EventKind.OTHER:
            return

        try:
            directory = self.watch_tree.resolve_descriptor(event.wd)
        except UnknownWatchDescriptorError as e:
            logger.error(f"Skipping {kind.value} event for '{event.name}': {e}")
            return

        full_path = directory / event.name if event.name else directory

        if kind is EventKind.MOVED_FROM:
            rescan.add(directory)
            if event.is_directory:
                self.correlator.moved_from(event.cookie, full_path)

        elif kind is EventKind.MOVED_TO:
            rescan.add(directory)
            if event.is_directory:
                self.correlator.moved_to(event.cookie, full_path)

        elif kind is EventKind.DELETED:
            if event.is_directory:
                # A deleted subtree needs no rescan of its own contents.
                rescan.discard_within(full_path)
                removed = self.watch_tree.unregister_subtree(full_path)
                logger.debug(f"Directory deleted: {full_path} ({removed} watch(es) dropped)")
            rescan.add(directory)

        elif kind is EventKind.CLOSED_WRITE:
            rescan.add(full_path)

        elif kind is EventKind.CREATED:
            rescan.add(full_path)
            if event.is_directory:
                failed = self.watch_tree.register_subtree(full_path)
                if failed:
                    logger.warning(
                        f"Could not watch {len(failed)} director(ies) under {full_path}: "
                        + ", ".join(str(p) for p in failed[:5])
                    )
