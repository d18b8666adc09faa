"""Tests for connection module."""

import logging

from src.homewatch.connection import reconnect

from conftest import FakeConnection


class TestReconnect:
    """Tests for reconnect function."""

    def test_immediate_success(self):
        connection = FakeConnection()
        sleeps = []

        failures = reconnect(connection, 60.0, sleeps.append)

        assert failures == 0
        assert sleeps == []
        assert connection.close_calls == 1
        assert connection.is_connected()

    def test_sleeps_after_each_failure(self):
        connection = FakeConnection(failures=3)
        sleeps = []

        failures = reconnect(connection, 60.0, sleeps.append)

        assert failures == 3
        assert sleeps == [60.0, 60.0, 60.0]
        assert connection.connect_calls == 4
        assert connection.is_connected()

    def test_uses_interval(self):
        connection = FakeConnection(failures=1)
        sleeps = []

        reconnect(connection, 0.5, sleeps.append)

        assert sleeps == [0.5]

    def test_close_error_ignored(self, caplog):
        class BrokenClose(FakeConnection):
            def close(self):
                super().close()
                raise RuntimeError("already gone")

        connection = BrokenClose()

        with caplog.at_level(logging.INFO):
            failures = reconnect(connection, 60.0, lambda s: None)

        assert failures == 0
        assert connection.is_connected()
        assert "already gone" in caplog.text

    def test_failures_logged(self, caplog):
        connection = FakeConnection(failures=2)

        with caplog.at_level(logging.WARNING):
            reconnect(connection, 60.0, lambda s: None)

        assert caplog.text.count("database unreachable") == 2

    def test_unusable_connection_retried(self):
        class FlakyCheck(FakeConnection):
            def __init__(self):
                super().__init__()
                self.checks = 0

            def is_connected(self):
                self.checks += 1
                return self.checks > 1

        connection = FlakyCheck()
        sleeps = []

        failures = reconnect(connection, 60.0, sleeps.append)

        assert failures == 1
        assert sleeps == [60.0]
