"""
User enumeration.

Providers answer "which users exist and where is their home"; the watcher
reads them once at startup for its roots and once per batch for the
scanner mapping.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List

from .models import User

logger = logging.getLogger(__name__)


class BaseUserProvider(ABC):
    """Abstract base class for user enumeration."""

    @abstractmethod
    def list_users(self) -> List[User]:
        """
        Enumerate all users.

        Returns:
            Users with a stable identity and an absolute home directory
        """
        pass


class StaticUserProvider(BaseUserProvider):
    """Fixed list of users."""

    def __init__(self, users: Iterable[User]):
        self._users = list(users)

    def list_users(self) -> List[User]:
        return list(self._users)


class DataDirUserProvider(BaseUserProvider):
    """
    Users laid out as subdirectories of a data directory.

    Each non-hidden subdirectory that contains files_subdir is a user whose
    identity is the directory name, e.g. ``/srv/data/alice/files``.
    """

    def __init__(self, data_dir: Path, files_subdir: str = "files"):
        """
        Args:
            data_dir: Directory holding one home per user
            files_subdir: Subdirectory a home must contain to count as a user
        """
        self.data_dir = Path(data_dir)
        self.files_subdir = files_subdir

    def list_users(self) -> List[User]:
        try:
            entries = sorted(self.data_dir.iterdir())
        except OSError as e:
            logger.error(f"Cannot list data directory {self.data_dir}: {e}")
            return []

        users = []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if not entry.is_dir():
                continue
            if self.files_subdir and not (entry / self.files_subdir).is_dir():
                continue
            users.append(User(identity=entry.name, home=entry.absolute()))
        return users
