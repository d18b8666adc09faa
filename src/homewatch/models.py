"""Data models for the homewatch package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from inotify_simple import flags


class EventKind(Enum):
    """Mutually exclusive interpretation of one raw inotify event."""
    OVERFLOW = "overflow"
    IGNORED = "ignored"
    MOVED_FROM = "moved_from"
    MOVED_TO = "moved_to"
    DELETED = "deleted"
    CLOSED_WRITE = "closed_write"
    CREATED = "created"
    OTHER = "other"


# First match wins. Several bits can be set on one event, so the order matters.
_KIND_PRECEDENCE = (
    (flags.Q_OVERFLOW, EventKind.OVERFLOW),
    (flags.IGNORED, EventKind.IGNORED),
    (flags.MOVED_FROM, EventKind.MOVED_FROM),
    (flags.MOVED_TO, EventKind.MOVED_TO),
    (flags.DELETE, EventKind.DELETED),
    (flags.CLOSE_WRITE, EventKind.CLOSED_WRITE),
    (flags.CREATE, EventKind.CREATED),
)


def classify(mask: int) -> EventKind:
    """
    Decide the kind of an event from its inotify mask.

    Args:
        mask: Raw inotify event mask

    Returns:
        The first matching EventKind, or EventKind.OTHER
    """
    for flag, kind in _KIND_PRECEDENCE:
        if mask & flag:
            return kind
    return EventKind.OTHER


@dataclass(frozen=True)
class RawEvent:
    """
    One inotify event as read from the kernel.

    Attributes:
        wd: Watch descriptor of the directory the event happened in
        mask: Bitset of inotify flags
        cookie: Move correlation token (only meaningful for move events)
        name: Entry name relative to the watched directory ("" for the directory itself)
    """
    wd: int
    mask: int
    cookie: int = 0
    name: str = ""

    @classmethod
    def from_inotify(cls, event) -> "RawEvent":
        """Create from an inotify_simple.Event."""
        return cls(wd=event.wd, mask=event.mask, cookie=event.cookie, name=event.name)

    @property
    def kind(self) -> EventKind:
        return classify(self.mask)

    @property
    def is_directory(self) -> bool:
        return bool(self.mask & flags.ISDIR)


@dataclass(frozen=True)
class WatchEntry:
    """A watched directory and the descriptor the kernel assigned to it."""
    descriptor: int
    path: Path


@dataclass
class PendingMove:
    """
    Half-seen directory rename, keyed by the inotify cookie.

    Attributes:
        cookie: Correlation token shared by the moved-from/moved-to pair
        source: Path the directory was moved away from
        destination: Path the directory was moved to
    """
    cookie: int
    source: Optional[Path] = None
    destination: Optional[Path] = None

    @property
    def is_complete(self) -> bool:
        return self.source is not None and self.destination is not None


@dataclass(frozen=True)
class User:
    """A user as reported by the user enumeration collaborator."""
    identity: str
    home: Path


@dataclass(frozen=True)
class UserRoot:
    """
    Watched directory owned by one user.

    Attributes:
        home_prefix: Real absolute path of the watched directory
        identity: Owner of every path under home_prefix
    """
    home_prefix: Path
    identity: str

    def __post_init__(self):
        if not self.home_prefix.is_absolute():
            raise ValueError(f"home_prefix must be absolute: {self.home_prefix}")


@dataclass(frozen=True)
class ScanTarget:
    """
    A rescan path rewritten relative to its owner.

    Attributes:
        identity: Owner of the path
        relative_path: Path relative to the owner's root ("" for the root itself)
        path: Original absolute path
    """
    identity: str
    relative_path: str
    path: Path

    @property
    def display_path(self) -> str:
        if self.relative_path:
            return f"{self.identity}/{self.relative_path}"
        return self.identity


class ScanOutcome(Enum):
    """Result of one scan invocation."""
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    LOCKED = "locked"
    FAILED = "failed"


@dataclass
class ScanResult:
    """Outcome of scanning one target."""
    target: ScanTarget
    outcome: ScanOutcome
    elapsed_ms: float = 0.0
    error: Optional[str] = None


@dataclass
class DispatchReport:
    """
    Summary of one dispatched batch.

    Attributes:
        results: One result per scanned target, in dispatch order
        dropped: Rescan paths that could not be attributed to a known user
    """
    results: List[ScanResult] = field(default_factory=list)
    dropped: List[Path] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)

    def counts(self) -> Dict[ScanOutcome, int]:
        """Number of results per outcome."""
        counts = {outcome: 0 for outcome in ScanOutcome}
        for result in self.results:
            counts[result.outcome] += 1
        return counts

    def targets(self) -> List[ScanTarget]:
        return [result.target for result in self.results]
