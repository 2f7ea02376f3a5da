"""Per-user batch serialization and cancellation."""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from athyra.data_layer.exceptions import GenerationCancelledError, LockTimeoutError


logger = logging.getLogger(__name__)


class UserLockRegistry:
    """One re-entrant lock per user.

    Two generation batches for the same user never run their check-expand-
    commit sequence at the same time; batches of different users do not
    block each other.
    """

    def __init__(self, timeout: Optional[float] = 30.0):
        self.timeout = timeout
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def hold(self, user_id: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the user's lock for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not acquired within the timeout
        """
        wait = self.timeout if timeout is None else timeout
        lock = self._lock_for(user_id)
        acquired = lock.acquire(timeout=wait) if wait is not None else lock.acquire()
        if not acquired:
            logger.warning("Timed out after %ss waiting for %s's batch lock", wait, user_id)
            raise LockTimeoutError(user_id, wait)
        try:
            yield
        finally:
            lock.release()


class CancellationToken:
    """Cooperative cancellation flag checked between batch stages."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, user_id: str, stage: str) -> None:
        if self._event.is_set():
            logger.info("Generation for %s cancelled before %s", user_id, stage)
            raise GenerationCancelledError(user_id, stage)
