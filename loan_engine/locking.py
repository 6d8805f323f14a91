"""
Per-loan serialization

Operations on one loan run one at a time; operations on different loans do
not wait on each other here. A loan's lock lives only while some caller
holds a reference to it, so the registry does not grow with every loan ever
touched.
"""

from contextlib import contextmanager
import threading
import weakref


class LoanLockRegistry:
    """Hands out one re-entrant lock per loan id"""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, threading.RLock]" = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def lock_for(self, loan_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(loan_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[loan_id] = lock
            return lock

    @contextmanager
    def hold(self, loan_id: str):
        lock = self.lock_for(loan_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
