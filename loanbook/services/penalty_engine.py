"""Late-payment penalty accrual for LoanBook.

Penalties are derived state: for an overdue, unpaid installment the
penalty is ``outstanding * DAILY_PENALTY_RATE * days_overdue`` where
``outstanding`` is the scheduled payment not yet covered. Running the
engine again for the same date changes nothing.
"""
from decimal import Decimal

from loanbook.config import DAILY_PENALTY_RATE, PENALTY_TOLERANCE
from loanbook.data_structures import ZERO, Installment, Schedule, as_date, quantize_money
from loanbook.exceptions import NoActiveScheduleError
from loanbook.logging import get_logger

logger = get_logger(__name__)


class PenaltyEngine:
    """Recomputes per-installment penalties against an evaluation date."""

    def __init__(self, daily_rate: Decimal = DAILY_PENALTY_RATE,
                 tolerance: Decimal = PENALTY_TOLERANCE):
        self.daily_rate = daily_rate
        self.tolerance = tolerance

    def penalty_for(self, installment: Installment, evaluation_date):
        """Return ``(penalty, days_overdue)`` as of ``evaluation_date``.

        Paid installments and installments not yet past due give (0, 0).
        """
        evaluation_date = as_date(evaluation_date)
        if installment.is_paid or installment.due_date >= evaluation_date:
            return ZERO, 0
        days = (evaluation_date - installment.due_date).days
        penalty = quantize_money(installment.outstanding * self.daily_rate * days)
        return penalty, days

    def accrue(self, schedule: Schedule, evaluation_date) -> bool:
        """Update stored penalties in place.

        Args:
            schedule: The loan's schedule.
            evaluation_date: "Today"; only the date part is used.

        Returns:
            True if any installment's penalty changed.

        Raises:
            NoActiveScheduleError: If the schedule has no installments.
        """
        if schedule is None or schedule.is_empty:
            raise NoActiveScheduleError()

        changed = False
        for inst in schedule:
            penalty, days = self.penalty_for(inst, evaluation_date)

            if penalty == ZERO:
                if inst.penalty != ZERO or inst.penalty_days:
                    inst.penalty = ZERO
                    inst.penalty_days = 0
                    changed = True
                continue

            if abs(penalty - inst.penalty) > self.tolerance:
                logger.debug("Installment #%d penalty %s -> %s (%d days)",
                             inst.sequence, inst.penalty, penalty, days)
                inst.penalty = penalty
                inst.penalty_days = days
                changed = True

        return changed


def accrue_penalties(schedule: Schedule, evaluation_date) -> bool:
    """Module-level shortcut for ``PenaltyEngine().accrue``."""
    return PenaltyEngine().accrue(schedule, evaluation_date)
