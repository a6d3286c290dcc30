"""
Project-scoped mutual exclusion for graph mutations.

Two dependency edits that are each acyclic against the state they observed can
still close a cycle when committed interleaved, so every read-validate-write
sequence runs while holding its project's lock.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List

logger = logging.getLogger(__name__)


class ProjectLockManager:
    """Registry of re-entrant locks, one per project."""

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}

    def _lock_for(self, project_id: int) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[project_id] = lock
            return lock

    @contextmanager
    def hold(self, *project_ids: int) -> Iterator[List[int]]:
        """
        Hold the locks of every given project for the duration of the block.

        Locks are acquired in ascending project order so overlapping bulk
        operations cannot deadlock each other.

        Yields:
            The sorted, de-duplicated project IDs that are held.
        """
        ordered = sorted(set(p for p in project_ids if p is not None))
        acquired: List[threading.RLock] = []
        try:
            for project_id in ordered:
                lock = self._lock_for(project_id)
                lock.acquire()
                acquired.append(lock)
            logger.debug(f"Acquired project locks {ordered}")
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()

    def hold_all(self, project_ids: Iterable[int]):
        """Convenience wrapper for an iterable of project IDs."""
        return self.hold(*list(project_ids))
