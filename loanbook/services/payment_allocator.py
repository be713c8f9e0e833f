"""Payment allocation for LoanBook.

Incoming money is applied oldest installment first ("waterfall"): each
unpaid installment is settled in full before the next one is touched, and
a payment that runs out part-way leaves that installment partially paid
and stops. Penalties are read as stored on the schedule; the caller
re-runs the penalty engine afterwards because outstanding amounts moved.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List

from loanbook.data_structures import (
    ZERO,
    AllocationLine,
    AllocationResult,
    Installment,
    InstallmentStatus,
    Schedule,
    as_date,
    to_decimal,
)
from loanbook.exceptions import InvalidAmountError, NoActiveScheduleError
from loanbook.logging import get_logger

logger = get_logger(__name__)


class PaymentAllocator:
    """Applies payments to a schedule in due-date order."""

    def allocate(self, schedule: Schedule, amount, evaluation_date) -> AllocationResult:
        """Apply ``amount`` to the schedule in place.

        Args:
            schedule: The loan's schedule.
            amount: Money received; must be positive.
            evaluation_date: Settlement date recorded on closed installments.

        Returns:
            AllocationResult describing every installment touched and what
            happened to any surplus.

        Raises:
            InvalidAmountError: If amount is not a positive number.
            NoActiveScheduleError: If the schedule has no installments.
        """
        amount = self.validate_amount(amount)
        if schedule is None or schedule.is_empty:
            raise NoActiveScheduleError()

        evaluation_date = as_date(evaluation_date)
        result = AllocationResult(amount=amount, evaluation_date=evaluation_date)
        remaining = amount

        for inst in schedule:
            if remaining <= 0:
                break
            if inst.is_paid:
                continue

            due = inst.total_due
            if due <= 0:
                # Earlier partial payments already cover it
                self._settle(inst, evaluation_date)
                result.lines.append(self._line(inst, ZERO))
                continue

            if remaining >= due:
                inst.paid_amount += due
                self._settle(inst, evaluation_date)
                remaining -= due
                result.lines.append(self._line(inst, due))
                logger.debug("Installment #%d settled with %s", inst.sequence, due)
            else:
                inst.paid_amount += remaining
                inst.status = InstallmentStatus.PARTIALLY_PAID
                result.lines.append(self._line(inst, remaining))
                logger.debug("Installment #%d part-paid %s, %s still due",
                             inst.sequence, remaining, inst.total_due)
                remaining = ZERO
                break

        if remaining > 0:
            self.apply_surplus(schedule, remaining, result)

        return result

    def apply_surplus(self, schedule: Schedule, surplus: Decimal,
                      result: AllocationResult) -> None:
        """Reduce the last unpaid installment by ``surplus``.

        The reduction never exceeds what is still owed on that installment,
        so no installment ends up with a negative amount. Whatever cannot be
        applied, and any surplus on a fully repaid schedule, is reported as
        returned to the payer.
        """
        target = schedule.last_unpaid()
        if target is None:
            result.surplus_returned = surplus
            logger.warning("Schedule fully repaid, returning surplus %s", surplus)
            return

        reduction = min(surplus, target.outstanding)
        if reduction > 0:
            principal_cut = min(reduction, target.principal)
            target.payment -= reduction
            target.principal -= principal_cut
            target.interest -= reduction - principal_cut
            result.surplus_applied = reduction
            result.surplus_target = target.sequence
            logger.info("Surplus %s reduces installment #%d to %s",
                        reduction, target.sequence, target.payment)

        if target.total_due <= 0:
            self._settle(target, result.evaluation_date)

        leftover = surplus - reduction
        if leftover > 0:
            result.surplus_returned = leftover
            logger.warning("Surplus %s exceeds installment #%d, returning it",
                           leftover, target.sequence)

    def settle_covered(self, schedule: Schedule, settled_on,
                       result: AllocationResult = None) -> List[int]:
        """Close every unpaid installment whose payments already cover it.

        A payment can cover the scheduled amount without covering the
        penalty; once penalties are recomputed on the smaller outstanding
        amount, ``total_due`` drops to zero or below. Lines of ``result``
        for such installments are updated to show the settlement.

        Returns:
            Sequences of the installments settled here.
        """
        settled_on = as_date(settled_on)
        settled = []
        for inst in schedule:
            if inst.is_paid or inst.total_due > 0:
                continue
            self._settle(inst, settled_on)
            settled.append(inst.sequence)
            logger.debug("Installment #%d covered by earlier payments, settled", inst.sequence)
            if result is not None:
                for line in result.lines:
                    if line.sequence == inst.sequence:
                        line.status = inst.status
                        line.remaining_due = ZERO
                        line.settled = True
        return settled

    @staticmethod
    def validate_amount(amount) -> Decimal:
        """Return amount as Decimal or raise InvalidAmountError."""
        try:
            value = to_decimal(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidAmountError(amount)
        if not value.is_finite() or value <= 0:
            raise InvalidAmountError(amount)
        return value

    @staticmethod
    def _settle(inst: Installment, settled_on: date) -> None:
        # The collected penalty stops being a live figure once settled
        inst.status = InstallmentStatus.PAID
        inst.paid_date = settled_on
        inst.settled_penalty = max(inst.paid_amount - inst.payment, ZERO)
        inst.penalty = ZERO
        inst.penalty_days = 0

    @staticmethod
    def _line(inst: Installment, applied: Decimal) -> AllocationLine:
        return AllocationLine(
            sequence=inst.sequence,
            applied=applied,
            status=inst.status,
            paid_amount=inst.paid_amount,
            remaining_due=max(inst.total_due, ZERO),
            settled=inst.is_paid,
        )


def allocate_payment(schedule: Schedule, amount, evaluation_date) -> AllocationResult:
    """Module-level shortcut for ``PaymentAllocator().allocate``."""
    return PaymentAllocator().allocate(schedule, amount, evaluation_date)
