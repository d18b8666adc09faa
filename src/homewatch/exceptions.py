"""Custom exceptions for the homewatch package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class WatchTreeError(WatcherError):
    """Error related to the watch descriptor table."""
    pass


class UnknownWatchDescriptorError(WatchTreeError):
    """An event referenced a watch descriptor with no known path."""

    def __init__(self, descriptor: int):
        super().__init__(f"Unknown watch descriptor: {descriptor}")
        self.descriptor = descriptor


class RootError(WatcherError):
    """Error related to user root management."""
    pass


class RootNotFoundError(RootError):
    """Specified user root does not exist."""
    pass


class RootAlreadyExistsError(RootError):
    """User root is already registered or overlaps an existing one."""
    pass


class QueueError(WatcherError):
    """Error related to the scan request queue."""
    pass


class WatcherNotRunningError(WatcherError):
    """Watcher process is not running."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Watcher process is already running."""
    pass
