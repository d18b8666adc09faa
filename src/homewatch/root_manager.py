"""Management of the watched user roots."""

import logging
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional

from .config import WatcherConfig
from .exceptions import RootAlreadyExistsError, RootNotFoundError
from .models import ScanTarget, User, UserRoot
from .watch_tree import is_within

logger = logging.getLogger(__name__)


class RootManager:
    """
    Holds the user roots and maps absolute paths to their owner.

    Roots never overlap, so a path belongs to at most one user.
    """

    def __init__(self):
        """Initialize the root manager."""
        self._roots: List[UserRoot] = []

    @classmethod
    def from_users(cls, users: Iterable[User], config: WatcherConfig) -> "RootManager":
        """
        Build the root set for a list of users.

        Users whose watched directory is missing or overlaps another user's
        are logged and skipped.

        Args:
            users: Users from the enumeration collaborator
            config: Watcher configuration (for files_subdir)

        Returns:
            A populated RootManager
        """
        manager = cls()
        for user in users:
            prefix = config.watch_root_for(user.home)
            try:
                manager.add_root(prefix, user.identity)
            except RootNotFoundError as e:
                logger.warning(f"Skipping user {user.identity}: {e}")
            except RootAlreadyExistsError as e:
                logger.warning(f"Skipping user {user.identity}: {e}")
        return manager

    def add_root(self, path: Path, identity: str, must_exist: bool = True) -> UserRoot:
        """
        Add a user root.

        Args:
            path: Directory owned by the user (resolved to its real path)
            identity: Owner of the directory
            must_exist: If True, raise error if the directory doesn't exist

        Returns:
            The added UserRoot

        Raises:
            RootNotFoundError: If must_exist and path isn't a directory
            RootAlreadyExistsError: If the root equals or overlaps an existing one
        """
        path = Path(path).resolve()

        if must_exist and not path.is_dir():
            raise RootNotFoundError(f"Root folder does not exist: {path}")

        for existing in self._roots:
            if path == existing.home_prefix:
                raise RootAlreadyExistsError(f"Root already registered: {path}")
            if is_within(path, existing.home_prefix):
                raise RootAlreadyExistsError(
                    f"'{path}' is already inside root '{existing.home_prefix}' of {existing.identity}"
                )
            if is_within(existing.home_prefix, path):
                raise RootAlreadyExistsError(
                    f"'{path}' contains root '{existing.home_prefix}' of {existing.identity}"
                )

        root = UserRoot(home_prefix=path, identity=identity)
        self._roots.append(root)
        return root

    def get_roots(self) -> FrozenSet[UserRoot]:
        return frozenset(self._roots)

    def find_root_for_path(self, path: Path) -> Optional[UserRoot]:
        """
        Find the user root containing the given path.

        Args:
            path: Absolute path to check

        Returns:
            The owning UserRoot, or None
        """
        path = Path(path)
        for root in self._roots:
            if is_within(path, root.home_prefix):
                return root
        return None

    def resolve_target(self, path: Path) -> Optional[ScanTarget]:
        """
        Rewrite an absolute path as owner + relative path.

        Returns:
            The ScanTarget, or None if no user owns the path
        """
        path = Path(path)
        root = self.find_root_for_path(path)
        if root is None:
            return None

        relative = path.relative_to(root.home_prefix).as_posix()
        if relative == ".":
            relative = ""
        return ScanTarget(identity=root.identity, relative_path=relative, path=path)

    def __len__(self) -> int:
        return len(self._roots)

    def __iter__(self):
        return iter(list(self._roots))

    def __contains__(self, path: Path) -> bool:
        path = Path(path).resolve()
        return any(root.home_prefix == path for root in self._roots)
