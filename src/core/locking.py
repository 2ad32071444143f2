"""
Per-resource locking with bounded waits.

Locks are keyed by resource: a route, a (truck, date) or (user, date) booking slot, a
donation, or a (product, zone) stock record. Keys are always acquired in a fixed
rank order (route, booking, donation, stock) so nested holds cannot deadlock.
"""

import threading
import time
from collections.abc import Callable, Hashable, Iterator
from contextlib import contextmanager
from datetime import date
from typing import Optional, TypeVar

import structlog

from src.core.config import RetryPolicy
from src.core.errors import BusyError

T = TypeVar("T")

_KEY_RANK = {"route": 0, "booking": 1, "donation": 2, "stock": 3}


def route_key(route_id: int) -> tuple:
    return ("route", route_id)


def truck_booking_key(truck_id: int, day: date) -> tuple:
    return ("booking", "truck", truck_id, day.isoformat())


def user_booking_key(user_id: int, day: date) -> tuple:
    return ("booking", "user", user_id, day.isoformat())


def donation_key(donation_id: int) -> tuple:
    return ("donation", donation_id)


def stock_key(product_id: int, zone: str) -> tuple:
    return ("stock", product_id, zone)


def _acquisition_order(key: Hashable) -> tuple[int, str]:
    kind = key[0] if isinstance(key, tuple) and key else None
    return (_KEY_RANK.get(kind, len(_KEY_RANK)), repr(key))


class KeyedLockManager:
    """
    Registry of re-entrant locks, one per resource key.

    Locks are created on first use and dropped once no thread holds or waits on
    them, so the registry only tracks resources in use. Holding several keys at once
    acquires them in rank order; if any key cannot be taken within the timeout
    the ones already taken are released and BusyError is raised.
    """

    def __init__(
        self,
        timeout_seconds: float = 2.0,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.logger = logger or structlog.get_logger(component="locks")
        self._locks: dict[Hashable, list] = {}  # key -> [lock, holders and waiters]
        self._registry_lock = threading.Lock()

    def _checkout(self, key: Hashable) -> threading.RLock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.RLock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._registry_lock:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def tracked_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        """Hold every given key for the duration of the block."""
        ordered = sorted(set(keys), key=_acquisition_order)
        acquired: list[tuple[Hashable, threading.RLock]] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                if not lock.acquire(timeout=self.timeout_seconds):
                    self._checkin(key)
                    self.logger.warning(
                        "lock_acquire_timeout", key=repr(key), timeout=self.timeout_seconds
                    )
                    raise BusyError(f"Resource {key!r} is busy, retry later", key=repr(key))
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    logger: structlog.BoundLogger,
    operation_name: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run an operation, retrying on BusyError with exponential backoff.

    Args:
        operation: Zero-argument callable; must leave no side effects when it raises BusyError
        policy: Retry bounds and delays
        logger: Logger for retry events
        operation_name: Name used in log events
        sleep: Sleep function (injectable for tests)

    Returns:
        The operation's result

    Raises:
        BusyError: When every attempt hit lock contention
    """
    attempt = 1
    while True:
        try:
            return operation()
        except BusyError:
            if attempt >= policy.max_attempts:
                logger.warning("busy_retries_exhausted", operation=operation_name, attempts=attempt)
                raise
            delay = policy.delay_for(attempt)
            logger.info("busy_retrying", operation=operation_name, attempt=attempt, delay=delay)
            sleep(delay)
            attempt += 1
