"""Dispatch of rescan targets to per-user scanners."""

import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

from .connection import BaseConnection
from .exceptions import QueueError
from .models import DispatchReport, ScanOutcome, ScanResult, ScanTarget, User
from .queue import ScanQueue
from .root_manager import RootManager

logger = logging.getLogger(__name__)


class BaseScanner(ABC):
    """Abstract base class for the scan/index collaborator."""

    @abstractmethod
    def scan(
        self,
        identity: str,
        relative_path: str,
        recursive: bool = False,
        lock: Optional[str] = None,
    ) -> ScanOutcome:
        """
        Re-index one path of one user.

        Args:
            identity: Owner of the path
            relative_path: Path relative to the owner's root ("" for the root)
            recursive: Whether to descend into subdirectories
            lock: Lock type to hold while scanning, if any

        Returns:
            The ScanOutcome; routine failures are results, not exceptions
        """
        pass


ScannerFactory = Callable[[User, BaseConnection], BaseScanner]


class QueueScanner(BaseScanner):
    """Scanner that hands requests to the indexer through the scan queue."""

    def __init__(self, queue: ScanQueue, base_dir: Path):
        """
        Args:
            queue: Connected scan request queue
            base_dir: Directory relative paths are resolved against
        """
        self.queue = queue
        self.base_dir = Path(base_dir)

    def scan(
        self,
        identity: str,
        relative_path: str,
        recursive: bool = False,
        lock: Optional[str] = None,
    ) -> ScanOutcome:
        target = self.base_dir / relative_path if relative_path else self.base_dir
        if not target.exists():
            return ScanOutcome.NOT_FOUND

        try:
            self.queue.enqueue({
                "user": identity,
                "path": relative_path,
                "recursive": recursive,
                "lock": lock,
            })
        except sqlite3.OperationalError as e:
            if "locked" in str(e).lower():
                return ScanOutcome.LOCKED
            logger.error(f"Queue error for {identity}/{relative_path}: {e}")
            return ScanOutcome.FAILED
        except (sqlite3.Error, QueueError) as e:
            logger.error(f"Queue error for {identity}/{relative_path}: {e}")
            return ScanOutcome.FAILED

        return ScanOutcome.SUCCESS


def queue_scanner_factory(files_subdir: str = "files") -> ScannerFactory:
    """
    Build a factory creating one QueueScanner per user.

    Args:
        files_subdir: Subdirectory of the home that relative paths start from
    """
    def factory(user: User, connection: BaseConnection) -> BaseScanner:
        base_dir = user.home / files_subdir if files_subdir else user.home
        return QueueScanner(connection, base_dir.resolve())
    return factory


class ScanDispatcher:
    """
    Resolves rescan paths to users and runs their scanners.

    Targets are scanned one after another; a failing target never stops
    the rest of the batch.
    """

    def __init__(self, root_manager: RootManager):
        """
        Args:
            root_manager: User roots used to attribute paths to owners
        """
        self.root_manager = root_manager

    def dispatch(
        self,
        paths: Iterable[Path],
        scanners: Mapping[str, BaseScanner],
    ) -> DispatchReport:
        """
        Scan every path with its owner's scanner.

        Args:
            paths: Deduplicated rescan targets of one batch
            scanners: Scanner per user identity, rebuilt for the batch

        Returns:
            Report with one result per scanned target
        """
        report = DispatchReport()

        for path in paths:
            target = self.root_manager.resolve_target(path)
            if target is None:
                logger.debug(f"No user owns {path}, dropping")
                report.dropped.append(path)
                continue

            scanner = scanners.get(target.identity)
            if scanner is None:
                logger.warning(f"No scanner for user {target.identity}, dropping {path}")
                report.dropped.append(path)
                continue

            report.results.append(self._scan(scanner, target))

        return report

    def _scan(self, scanner: BaseScanner, target: ScanTarget) -> ScanResult:
        start = time.perf_counter()
        error = None
        try:
            outcome = scanner.scan(target.identity, target.relative_path, recursive=False, lock=None)
        except Exception as e:
            outcome = ScanOutcome.FAILED
            error = str(e)
        elapsed_ms = (time.perf_counter() - start) * 1000

        name = target.display_path
        if outcome is ScanOutcome.SUCCESS:
            logger.info(f"File {name} processed in {elapsed_ms:.1f} ms")
        elif outcome is ScanOutcome.NOT_FOUND:
            logger.info(f"File {name} does not exist anymore")
        elif outcome is ScanOutcome.LOCKED:
            logger.info(f"File {name} locked")
        else:
            logger.error(f"File {name} failed" + (f": {error}" if error else ""))

        return ScanResult(target=target, outcome=outcome, elapsed_ms=elapsed_ms, error=error)
