"""Periodic penalty sweep for LoanBook.

Runs ``LoanService.sweep_penalties`` on a background thread at a fixed
interval. Accrual is idempotent, so a missed or late tick simply catches
up on the next one.
"""
import threading
from datetime import date
from typing import Callable, Optional

from loanbook.config import PENALTY_SWEEP_INTERVAL_SECONDS
from loanbook.logging import get_logger

logger = get_logger(__name__)


class PenaltySweeper:
    """Repeating task that re-accrues penalties on every active loan."""

    def __init__(self, loan_service, interval_seconds: float = PENALTY_SWEEP_INTERVAL_SECONDS,
                 clock: Callable[[], date] = date.today,
                 on_change: Optional[Callable[[int], None]] = None):
        """Initialize PenaltySweeper.

        Args:
            loan_service: LoanService whose ``sweep_penalties`` is invoked.
            interval_seconds: Delay between sweeps.
            clock: Returns the evaluation date for each sweep.
            on_change: Called with the id of every loan whose penalties changed.
        """
        self.loan_service = loan_service
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.on_change = on_change
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self):
        """Perform one sweep now and return the ids of loans that changed."""
        today = self.clock()
        changed = self.loan_service.sweep_penalties(today, on_change=self.on_change)
        if changed:
            logger.info("Penalty sweep for %s changed %d loan(s)", today, len(changed))
        else:
            logger.debug("Penalty sweep for %s: no changes", today)
        return changed

    def _loop(self):
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Penalty sweep failed")
            self._stop.wait(self.interval_seconds)

    def start(self) -> None:
        """Start sweeping on a daemon thread. First sweep runs immediately."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="penalty-sweeper", daemon=True)
        self._thread.start()
        logger.info("Penalty sweeper started (every %ss)", self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to stop and wait up to ``timeout`` for it.

        If a sweep is still in progress when the timeout expires the thread
        stays registered, so ``running`` remains True and ``start()`` does
        not launch a second sweeper beside it.
        """
        self._stop.set()
        if self._thread is None:
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Penalty sweeper still finishing a sweep after %ss", timeout)
            return
        self._thread = None
        logger.info("Penalty sweeper stopped")
