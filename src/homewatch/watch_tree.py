"""Mapping between watched directories and inotify watch descriptors."""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .exceptions import UnknownWatchDescriptorError
from .models import WatchEntry

logger = logging.getLogger(__name__)


def is_within(path: Path, base: Path) -> bool:
    """
    Check whether path is base itself or lies below it.

    Comparison is by path components, so /a/b2 is not within /a/b.
    """
    return path == base or base in path.parents


class WatchTree:
    """
    Owns the watch descriptor table for one inotify instance.

    The descriptor -> path mapping is kept a bijection: every watched
    directory has exactly one descriptor and every descriptor one path.
    """

    def __init__(self, inotify, mask: int, follow_symlinks: bool = False):
        """
        Initialize the watch tree.

        Args:
            inotify: Object exposing add_watch(path, mask) and rm_watch(wd),
                normally an inotify_simple.INotify
            mask: Event mask registered on every directory
            follow_symlinks: Whether to descend into symlinked directories
        """
        self._inotify = inotify
        self._mask = mask
        self._follow_symlinks = follow_symlinks
        self._paths: Dict[int, Path] = {}
        self._descriptors: Dict[Path, int] = {}

    def register_subtree(
        self,
        base_path: Path,
        cancelled: Optional[Callable[[], bool]] = None,
    ) -> List[Path]:
        """
        Watch base_path and every directory below it.

        Directories are visited depth-first, each parent before its
        children, so base_path is watched even when listing its contents
        fails part way. Directories already in the table are registered
        again so a new directory at a known path replaces the stale entry.

        Args:
            base_path: Root of the subtree to watch
            cancelled: Checked before each directory; the walk ends early
                once it returns True

        Returns:
            Directories that could not be watched or listed
        """
        failed: List[Path] = []
        stack = [Path(base_path)]

        while stack:
            if cancelled is not None and cancelled():
                logger.debug(f"Registration of {base_path} cancelled")
                break

            directory = stack.pop()
            if not self._watch(directory):
                failed.append(directory)
                continue

            try:
                children = sorted(directory.iterdir())
            except OSError as e:
                logger.debug(f"Cannot list {directory}: {e}")
                failed.append(directory)
                continue

            subdirs = []
            for child in children:
                try:
                    if child.is_symlink() and not self._follow_symlinks:
                        continue
                    if child.is_dir():
                        subdirs.append(child)
                except OSError:
                    continue
            stack.extend(reversed(subdirs))

        return failed

    def _watch(self, path: Path) -> bool:
        """Register a single directory. Returns False if the kernel refused."""
        try:
            descriptor = self._inotify.add_watch(str(path), self._mask)
        except OSError as e:
            logger.debug(f"Cannot watch {path}: {e}")
            return False

        current = self._descriptors.get(path)
        if current == descriptor:
            return True
        if current is not None:
            # A different directory now lives at this path, e.g. after the
            # old one was moved out of the tree.
            removed = self._drop_within(path, keep=descriptor)
            logger.debug(f"Replaced {removed} stale watch(es) under {path}")

        # Same inode reached under a new path: the kernel reuses the descriptor.
        previous = self._paths.get(descriptor)
        if previous is not None:
            del self._descriptors[previous]

        self._paths[descriptor] = path
        self._descriptors[path] = descriptor
        logger.debug(f"Watching {path} (wd={descriptor})")
        return True

    def unregister_subtree(self, base_path: Path) -> int:
        """
        Stop watching base_path and every watched directory below it.

        Args:
            base_path: Root of the subtree to drop

        Returns:
            Number of entries removed
        """
        return self._drop_within(Path(base_path))

    def _drop_within(self, base_path: Path, keep: Optional[int] = None) -> int:
        doomed = [
            (path, descriptor)
            for path, descriptor in self._descriptors.items()
            if is_within(path, base_path)
        ]

        for path, descriptor in doomed:
            del self._descriptors[path]
            del self._paths[descriptor]
            if descriptor != keep:
                self._remove_watch(descriptor, path)

        return len(doomed)

    def _remove_watch(self, descriptor: int, path: Path) -> None:
        try:
            self._inotify.rm_watch(descriptor)
        except OSError as e:
            # The kernel drops watches on deleted directories by itself.
            logger.debug(f"rm_watch({descriptor}) for {path} failed: {e}")

    def rewrite_prefix(self, old_prefix: Path, new_prefix: Path) -> int:
        """
        Re-root every entry under old_prefix at new_prefix.

        Descriptors survive a rename of the watched directory, only the
        recorded paths change.

        Args:
            old_prefix: Path the subtree was moved away from
            new_prefix: Path the subtree was moved to

        Returns:
            Number of entries rewritten
        """
        old_prefix = Path(old_prefix)
        new_prefix = Path(new_prefix)
        moved = [
            (path, descriptor)
            for path, descriptor in self._descriptors.items()
            if is_within(path, old_prefix)
        ]

        for path, _ in moved:
            del self._descriptors[path]
        for path, descriptor in moved:
            new_path = new_prefix / path.relative_to(old_prefix)
            stale = self._descriptors.get(new_path)
            if stale is not None and stale != descriptor:
                del self._paths[stale]
                self._remove_watch(stale, new_path)
            self._paths[descriptor] = new_path
            self._descriptors[new_path] = descriptor

        if moved:
            logger.debug(f"Rewrote {len(moved)} watch(es) from {old_prefix} to {new_prefix}")
        return len(moved)

    def resolve_descriptor(self, descriptor: int) -> Path:
        """
        Get the directory a descriptor watches.

        Raises:
            UnknownWatchDescriptorError: If the descriptor is not in the table
        """
        try:
            return self._paths[descriptor]
        except KeyError:
            raise UnknownWatchDescriptorError(descriptor) from None

    def forget_descriptor(self, descriptor: int) -> Optional[Path]:
        """
        Drop an entry the kernel has already removed (IN_IGNORED).

        Returns:
            The path that was watched, or None if the descriptor was unknown
        """
        path = self._paths.pop(descriptor, None)
        if path is not None:
            del self._descriptors[path]
        return path

    def descriptor_for(self, path: Path) -> Optional[int]:
        return self._descriptors.get(Path(path))

    def entries(self) -> List[WatchEntry]:
        return [WatchEntry(descriptor, path) for descriptor, path in self._paths.items()]

    def paths(self) -> List[Path]:
        return list(self._descriptors.keys())

    def clear(self) -> None:
        """Forget every entry without touching the kernel."""
        self._paths.clear()
        self._descriptors.clear()

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: Path) -> bool:
        return Path(path) in self._descriptors
