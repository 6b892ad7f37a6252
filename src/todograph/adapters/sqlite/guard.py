"""Bounded retry for cross-process write contention.

SQLite serializes writers with a file lock. When another process holds it
longer than the busy timeout, the whole unit of work is retried from
scratch after an exponential backoff; a retry never resumes a half-applied
transaction because the failed attempt was rolled back.
"""

from __future__ import annotations

import logging
import random
import sqlite3
import time
from collections.abc import Callable
from typing import TypeVar

from todograph.exceptions import ConcurrencyError
from todograph.models.config_models import LockConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LOCK_MESSAGES = ("database is locked", "database is busy", "database table is locked")


def is_lock_error(error: BaseException) -> bool:
    """Check whether an exception is SQLite lock contention."""
    return isinstance(error, sqlite3.OperationalError) and any(
        message in str(error) for message in _LOCK_MESSAGES
    )


class ConcurrencyGuard:
    """Runs units of work with retry-with-backoff on lock contention."""

    def __init__(
        self,
        config: LockConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or LockConfig()
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry ``attempt`` (0-based), with up to 10% jitter."""
        base = min(self.config.initial_delay * (2**attempt), self.config.max_delay)
        return base + random.uniform(0, base / 10)

    def run(self, unit: Callable[[], T]) -> T:
        """Run ``unit``, retrying while the store is locked.

        Args:
            unit: Callable performing one complete transaction

        Returns:
            Whatever ``unit`` returns

        Raises:
            ConcurrencyError: If the store is still locked after
                ``max_retries`` attempts
        """
        attempts = self.config.max_retries
        for attempt in range(attempts):
            try:
                return unit()
            except sqlite3.OperationalError as e:
                if not is_lock_error(e):
                    raise
                if attempt == attempts - 1:
                    logger.warning("store still locked after %d attempts", attempts)
                    raise ConcurrencyError(
                        f"Store is locked by another process (gave up after {attempts} attempts)"
                    ) from e
                delay = self.delay_for(attempt)
                logger.debug(
                    "store locked, retrying in %.3fs (attempt %d/%d)",
                    delay,
                    attempt + 1,
                    attempts,
                )
                self._sleep(delay)

        # Should never reach here, but satisfy type checker
        raise ConcurrencyError("Max retries exceeded")
