"""Tests for scanner module."""

import logging
import sqlite3

import pytest

from src.homewatch.exceptions import QueueError
from src.homewatch.models import ScanOutcome, User
from src.homewatch.queue import ScanQueue
from src.homewatch.root_manager import RootManager
from src.homewatch.scanner import QueueScanner, ScanDispatcher, queue_scanner_factory

from conftest import RecordingScanner


@pytest.fixture
def roots(data_dir) -> RootManager:
    manager = RootManager()
    manager.add_root(data_dir / "alice" / "files", "alice")
    manager.add_root(data_dir / "bob" / "files", "bob")
    return manager


class TestScanDispatcher:
    """Tests for ScanDispatcher class."""

    def test_dispatches_to_owner(self, data_dir, roots):
        alice = RecordingScanner()
        bob = RecordingScanner()
        files = data_dir / "alice" / "files"

        report = ScanDispatcher(roots).dispatch(
            [files / "docs", data_dir / "bob" / "files" / "x.txt", files],
            {"alice": alice, "bob": bob},
        )

        assert alice.calls == [("alice", "docs"), ("alice", "")]
        assert bob.calls == [("bob", "x.txt")]
        assert len(report) == 3
        assert report.dropped == []

    def test_outcomes_recorded(self, data_dir, roots):
        files = data_dir / "alice" / "files"
        scanner = RecordingScanner(outcomes={
            "gone": ScanOutcome.NOT_FOUND,
            "busy": ScanOutcome.LOCKED,
            "bad": ScanOutcome.FAILED,
        })

        report = ScanDispatcher(roots).dispatch(
            [files / "ok", files / "gone", files / "busy", files / "bad"],
            {"alice": scanner},
        )

        assert [r.outcome for r in report.results] == [
            ScanOutcome.SUCCESS,
            ScanOutcome.NOT_FOUND,
            ScanOutcome.LOCKED,
            ScanOutcome.FAILED,
        ]
        assert all(r.elapsed_ms >= 0 for r in report.results)

    def test_exception_does_not_stop_batch(self, data_dir, roots, caplog):
        files = data_dir / "alice" / "files"
        scanner = RecordingScanner(outcomes={"boom": RuntimeError("indexer crashed")})

        with caplog.at_level(logging.ERROR):
            report = ScanDispatcher(roots).dispatch(
                [files / "boom", files / "after"],
                {"alice": scanner},
            )

        assert report.results[0].outcome is ScanOutcome.FAILED
        assert report.results[0].error == "indexer crashed"
        assert report.results[1].outcome is ScanOutcome.SUCCESS
        assert "alice/boom failed" in caplog.text

    def test_unowned_path_dropped(self, data_dir, roots):
        scanner = RecordingScanner()
        stray = data_dir / "carol" / "files" / "x"

        report = ScanDispatcher(roots).dispatch([stray], {"alice": scanner})

        assert report.dropped == [stray]
        assert len(report) == 0
        assert scanner.calls == []

    def test_missing_scanner_dropped(self, data_dir, roots, caplog):
        path = data_dir / "bob" / "files" / "x"

        with caplog.at_level(logging.WARNING):
            report = ScanDispatcher(roots).dispatch([path], {"alice": RecordingScanner()})

        assert report.dropped == [path]
        assert "No scanner for user bob" in caplog.text

    def test_success_logged_with_timing(self, data_dir, roots, caplog):
        files = data_dir / "alice" / "files"

        with caplog.at_level(logging.INFO):
            ScanDispatcher(roots).dispatch([files / "a.txt"], {"alice": RecordingScanner()})

        assert "File alice/a.txt processed in" in caplog.text
        assert " ms" in caplog.text


class StubQueue:
    """Queue whose enqueue raises a scripted error."""

    def __init__(self, error=None):
        self.error = error
        self.items = []

    def enqueue(self, item):
        if self.error is not None:
            raise self.error
        self.items.append(item)
        return len(self.items)


class TestQueueScanner:
    """Tests for QueueScanner class."""

    def test_enqueues_request(self, tmp_path):
        (tmp_path / "docs").mkdir()
        queue = StubQueue()

        outcome = QueueScanner(queue, tmp_path).scan("alice", "docs")

        assert outcome is ScanOutcome.SUCCESS
        assert queue.items == [{"user": "alice", "path": "docs", "recursive": False, "lock": None}]

    def test_root_path(self, tmp_path):
        queue = StubQueue()

        assert QueueScanner(queue, tmp_path).scan("alice", "") is ScanOutcome.SUCCESS
        assert queue.items[0]["path"] == ""

    def test_missing_target(self, tmp_path):
        queue = StubQueue()

        assert QueueScanner(queue, tmp_path).scan("alice", "gone.txt") is ScanOutcome.NOT_FOUND
        assert queue.items == []

    def test_locked_database(self, tmp_path):
        queue = StubQueue(sqlite3.OperationalError("database is locked"))

        assert QueueScanner(queue, tmp_path).scan("alice", "") is ScanOutcome.LOCKED

    def test_other_database_error(self, tmp_path):
        queue = StubQueue(sqlite3.OperationalError("disk I/O error"))

        assert QueueScanner(queue, tmp_path).scan("alice", "") is ScanOutcome.FAILED

    def test_disconnected_queue(self, tmp_path):
        queue = StubQueue(QueueError("Queue is not connected"))

        assert QueueScanner(queue, tmp_path).scan("alice", "") is ScanOutcome.FAILED

    def test_factory_with_real_queue(self, data_dir, tmp_path):
        (data_dir / "alice" / "files" / "a.txt").write_text("a")
        factory = queue_scanner_factory("files")

        with ScanQueue(tmp_path / "queue.db") as queue:
            scanner = factory(User("alice", data_dir / "alice"), queue)
            outcome = scanner.scan("alice", "a.txt")

            assert outcome is ScanOutcome.SUCCESS
            assert queue.peek()[0][1]["path"] == "a.txt"
