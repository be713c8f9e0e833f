"""Per-loan mutual exclusion for LoanBook.

Penalty accrual and payment allocation both read-modify-write a loan's
schedule, so calls for the same loan must not overlap. Different loans
never share a lock.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable


class LoanLockRegistry:
    """Hands out one re-entrant lock per loan identifier."""

    def __init__(self):
        self._locks: Dict[Hashable, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, loan_id: Hashable) -> threading.RLock:
        """Return the lock for ``loan_id``, creating it on first use."""
        with self._guard:
            lock = self._locks.get(loan_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[loan_id] = lock
            return lock

    @contextmanager
    def hold(self, loan_id: Hashable):
        """Context manager holding the loan's lock for the block.

        Usage:
            with locks.hold(loan_id):
                schedule = db.load_schedule(loan_id)
                ...
                db.save_schedule(loan_id, schedule)
        """
        lock = self.lock_for(loan_id)
        with lock:
            yield

    def forget(self, loan_id: Hashable) -> None:
        """Drop the lock of a loan that will not be touched again."""
        with self._guard:
            self._locks.pop(loan_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
