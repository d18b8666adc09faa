"""Tests for scan queue module."""

import pytest
import sqlite3

from src.homewatch.queue import ScanQueue
from src.homewatch.exceptions import QueueError


class TestScanQueue:
    """Tests for ScanQueue class."""

    def test_not_connected_on_init(self, tmp_path):
        db_path = tmp_path / "test.db"
        queue = ScanQueue(db_path)

        assert queue.is_connected() is False
        assert not db_path.exists()

    def test_connect_creates_database(self, tmp_path):
        db_path = tmp_path / "test.db"
        queue = ScanQueue(db_path)
        queue.connect()

        assert db_path.exists()
        assert queue.is_connected() is True
        queue.close()

    def test_connect_is_idempotent(self, tmp_path):
        queue = ScanQueue(tmp_path / "test.db")
        queue.connect()
        queue.enqueue({"n": 1})
        queue.connect()

        assert queue.size() == 1
        queue.close()

    def test_close_disconnects(self, tmp_path):
        queue = ScanQueue(tmp_path / "test.db")
        queue.connect()
        queue.close()

        assert queue.is_connected() is False
        queue.close()

    def test_operations_require_connection(self, tmp_path):
        queue = ScanQueue(tmp_path / "test.db")

        with pytest.raises(QueueError):
            queue.enqueue({"n": 1})
        with pytest.raises(QueueError):
            queue.size()

    def test_connect_unreachable_path_raises(self, tmp_path):
        queue = ScanQueue(tmp_path / "missing" / "dir" / "test.db")

        with pytest.raises(sqlite3.OperationalError):
            queue.connect()
        assert queue.is_connected() is False

    def test_enqueue_returns_row_id(self, tmp_path):
        with ScanQueue(tmp_path / "test.db") as queue:
            first = queue.enqueue({"user": "alice", "path": "docs"})
            second = queue.enqueue({"user": "alice", "path": "docs/a.txt"})

            assert 0 < first < second

    def test_peek_in_fifo_order(self, tmp_path):
        with ScanQueue(tmp_path / "test.db") as queue:
            for i in range(5):
                queue.enqueue({"user": "alice", "path": f"f{i}"})

            items = queue.peek(limit=3)

            assert [item["path"] for _, item in items] == ["f0", "f1", "f2"]

    def test_peek_does_not_remove(self, tmp_path):
        with ScanQueue(tmp_path / "test.db") as queue:
            queue.enqueue({"user": "bob", "path": ""})

            assert queue.peek() == queue.peek()
            assert queue.size() == 1

    def test_empty_queue(self, tmp_path):
        with ScanQueue(tmp_path / "test.db") as queue:
            assert queue.peek() == []
            assert queue.size() == 0

    def test_size_ignores_claimed_rows(self, tmp_path):
        db_path = tmp_path / "test.db"
        with ScanQueue(db_path) as queue:
            queue.enqueue({"user": "alice", "path": "a"})
            queue.enqueue({"user": "alice", "path": "b"})

        indexer = sqlite3.connect(str(db_path))
        indexer.execute("UPDATE scan_requests SET status = 'processing' WHERE id = 1")
        indexer.commit()
        indexer.close()

        with ScanQueue(db_path) as queue:
            assert queue.size() == 1
            assert [item["path"] for _, item in queue.peek()] == ["b"]

    def test_persists_across_connections(self, tmp_path):
        db_path = tmp_path / "test.db"
        queue = ScanQueue(db_path)
        queue.connect()
        queue.enqueue({"user": "alice", "path": "a"})
        queue.close()
        queue.connect()

        assert queue.size() == 1
        queue.close()

    def test_separate_tables(self, tmp_path):
        db_path = tmp_path / "test.db"
        with ScanQueue(db_path, "first") as first, ScanQueue(db_path, "second") as second:
            first.enqueue({"user": "alice", "path": "a"})

            assert first.size() == 1
            assert second.size() == 0
