"""Database connectivity interface and the per-batch reconnect policy."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)


class BaseConnection(ABC):
    """Abstract base class for the connection shared with the indexer."""

    @abstractmethod
    def connect(self) -> None:
        """Open the connection. Raises on failure."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check whether the connection is usable."""
        pass


def reconnect(
    connection: BaseConnection,
    interval_s: float = 60.0,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Close and reopen a connection, retrying until it is usable.

    Closing errors are logged and ignored. Every failed attempt is logged
    and followed by a sleep of interval_s; there is no retry limit.

    Args:
        connection: Connection to re-validate
        interval_s: Seconds to wait between failed attempts
        sleep: Sleep function

    Returns:
        Number of failed attempts
    """
    try:
        connection.close()
    except Exception as e:
        logger.info(f"Error while disconnecting from database: {e}")

    failures = 0
    while True:
        try:
            connection.connect()
        except Exception as e:
            logger.warning(f"Error while re-connecting to database: {e}")

        if connection.is_connected():
            break

        failures += 1
        sleep(interval_s)

    if failures:
        logger.info(f"Reconnected to database after {failures} failed attempt(s)")
    return failures
