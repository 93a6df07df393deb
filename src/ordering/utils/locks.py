"""Process-wide keyed locks.

Protean commits the unit of work after a command handler returns, so callers
hold the lock around ``current_domain.process(...)`` rather than inside the
handler. Keys look like ``order:<id>`` or ``coupon:<CODE>``.

A key's lock lives only while some thread holds or waits on it.
"""

import threading
from contextlib import contextmanager

import structlog

logger = structlog.get_logger(__name__)


class KeyedLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._holders: dict[str, int] = {}

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            self._holders[key] = self._holders.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            remaining = self._holders[key] - 1
            if remaining:
                self._holders[key] = remaining
            else:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: str):
        """Acquire every key in sorted order, release in reverse."""
        ordered = sorted(set(k for k in keys if k))
        checked_out = []
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                if not lock.acquire(blocking=False):
                    logger.debug("lock_contended", key=key)
                    lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(checked_out):
                self._checkin(key)

    def __len__(self):
        with self._guard:
            return len(self._locks)


def order_key(order_id) -> str:
    return f"order:{order_id}"


def coupon_key(code) -> str:
    return f"coupon:{str(code).upper()}"
