"""Per-key mutexes so that work on the same episode never interleaves."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger(__name__)


class KeyedLock:
    """Registry of re-entrant locks keyed by string (one per episode id).

    Locks are re-entrant so a coordinator operation holding an episode's lock can
    call another operation that takes the same lock (transcribe -> download).
    """

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _get(self, key: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._get(key)
        if not lock.acquire(blocking=False):
            logger.debug("Waiting for lock on %s", key)
            lock.acquire()
        try:
            yield
        finally:
            lock.release()
