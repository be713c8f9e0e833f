"""Loan lifecycle service for LoanBook.

This service handles the host side of a loan:
- Loan issuance (business limits, schedule generation, persistence)
- Payments (accrue, allocate, re-accrue, persist) under the loan's lock
- Penalty accrual for one loan and sweeps across all active loans
- Summary figures for display
"""
from datetime import date
from decimal import Decimal

from loanbook.config import (
    DEFAULT_INTEREST_RATE,
    MAX_LOAN_AMOUNT,
    MAX_LOAN_DURATION,
    MIN_LOAN_AMOUNT,
    MIN_LOAN_DURATION,
)
from loanbook.data_structures import AllocationResult, Schedule, ScheduleSummary, to_decimal
from loanbook.exceptions import (
    InvalidAmountError,
    LoanBookError,
    LoanClosedError,
    LoanLimitError,
    LoanNotFoundError,
    NoActiveScheduleError,
)
from loanbook.logging import get_logger
from loanbook.reports import ScheduleReport
from loanbook.result import ErrorType, Result

from .amortization import AmortizationCalculator
from .locking import LoanLockRegistry
from .payment_allocator import PaymentAllocator
from .penalty_engine import PenaltyEngine

logger = get_logger(__name__)


class LoanService:
    """Handles loan lifecycle operations.

    The service owns no schedule state: every call loads the loan's
    schedule from the database, transforms it with the engines and saves
    it back while holding that loan's lock.
    """

    def __init__(self, db_manager, locks=None, calculator=None, penalty_engine=None,
                 allocator=None):
        """Initialize LoanService.

        Args:
            db_manager: DatabaseManager instance for data persistence.
            locks: LoanLockRegistry shared by everything that mutates schedules.
            calculator: AmortizationCalculator (default instance if omitted).
            penalty_engine: PenaltyEngine (default instance if omitted).
            allocator: PaymentAllocator (default instance if omitted).
        """
        self.db = db_manager
        self.locks = locks if locks is not None else LoanLockRegistry()
        self.calculator = calculator if calculator is not None else AmortizationCalculator()
        self.penalty_engine = penalty_engine if penalty_engine is not None else PenaltyEngine()
        self.allocator = allocator if allocator is not None else PaymentAllocator()
        self.report = ScheduleReport(self.penalty_engine)

    def default_interest_rate(self) -> Decimal:
        """Annual rate for new loans: the ``interest_rate`` setting or the default."""
        return Decimal(self.db.get_setting("interest_rate", str(DEFAULT_INTEREST_RATE)))

    def check_loan_limits(self, principal, term_months) -> Result:
        """Check an application against the lender's limits.

        Returns:
            Result.ok(None) or a failure with ErrorType.LIMIT / VALIDATION.
        """
        try:
            self._enforce_limits(principal, term_months)
        except LoanLimitError as e:
            return Result.from_error(e, ErrorType.LIMIT)
        except (ArithmeticError, TypeError, ValueError):
            return Result.fail(f"Not a valid amount or term: {principal!r}, {term_months!r}",
                               ErrorType.VALIDATION)
        return Result.ok()

    def check_payment(self, loan_id, amount) -> Result:
        """Check that a payment entry can be accepted, without applying it.

        Returns:
            Result.ok(amount as Decimal), or a failure with ErrorType.VALIDATION
            (bad amount), NOT_FOUND (unknown loan or no schedule) or CLOSED.
        """
        try:
            amount = self.allocator.validate_amount(amount)
            schedule = self.db.load_schedule(loan_id)
            if schedule.is_empty:
                raise NoActiveScheduleError(loan_id)
            if schedule.is_closed:
                raise LoanClosedError(loan_id)
        except InvalidAmountError as e:
            return Result.from_error(e, ErrorType.VALIDATION)
        except (LoanNotFoundError, NoActiveScheduleError) as e:
            return Result.from_error(e, ErrorType.NOT_FOUND)
        except LoanClosedError as e:
            return Result.from_error(e, ErrorType.CLOSED)
        return Result.ok(amount)

    @staticmethod
    def _enforce_limits(principal, term_months):
        principal = to_decimal(principal)
        if not MIN_LOAN_AMOUNT <= principal <= MAX_LOAN_AMOUNT:
            raise LoanLimitError("principal", principal, MIN_LOAN_AMOUNT, MAX_LOAN_AMOUNT)
        if not MIN_LOAN_DURATION <= int(term_months) <= MAX_LOAN_DURATION:
            raise LoanLimitError("term_months", term_months, MIN_LOAN_DURATION, MAX_LOAN_DURATION)

    def issue_loan(self, principal, term_months, start_date=None, annual_rate=None,
                   borrower=None, enforce_limits=True):
        """Issue a new loan and store its schedule.

        Args:
            principal: Loan principal amount.
            term_months: Loan duration in months.
            start_date: Issue date (default: today).
            annual_rate: Annual rate in percent (default: default_interest_rate()).
            borrower: Free-text borrower reference.
            enforce_limits: Apply MIN/MAX amount and duration limits.

        Returns:
            The new loan id.

        Raises:
            LoanLimitError: If limits are enforced and violated.
            InvalidLoanTermsError: If the terms cannot produce a schedule.
        """
        if start_date is None:
            start_date = date.today()
        if annual_rate is None:
            annual_rate = self.default_interest_rate()

        schedule = self.calculator.generate(principal, term_months, annual_rate, start_date)
        if enforce_limits:
            self._enforce_limits(schedule.terms.principal, schedule.terms.term_months)

        total_amount = sum((inst.payment for inst in schedule), Decimal("0"))
        with self.db.transaction():
            loan_id = self.db.add_loan_record(
                schedule.terms, schedule.monthly_payment, total_amount, borrower=borrower
            )
            self.db.save_schedule(loan_id, schedule)

        logger.info("Issued loan %s: %s over %d months at %s%%, monthly payment %s",
                    loan_id, schedule.terms.principal, schedule.terms.term_months,
                    schedule.terms.annual_rate, schedule.monthly_payment,
                    extra={'loan_id': loan_id})
        return loan_id

    def get_schedule(self, loan_id) -> Schedule:
        """Load a loan's schedule (LoanNotFoundError if the loan is unknown)."""
        return self.db.load_schedule(loan_id)

    def get_schedule_df(self, loan_id):
        return self.report.to_dataframe(self.get_schedule(loan_id))

    def accrue_penalties(self, loan_id, today=None) -> bool:
        """Recompute one loan's penalties and persist them if they changed.

        Returns:
            True if any penalty changed.

        Raises:
            LoanNotFoundError: If the loan does not exist.
            NoActiveScheduleError: If the loan has no schedule.
        """
        today = today or date.today()
        with self.locks.hold(loan_id):
            schedule = self.db.load_schedule(loan_id)
            if schedule.is_empty:
                raise NoActiveScheduleError(loan_id)
            changed = self.penalty_engine.accrue(schedule, today)
            if changed:
                self.db.save_schedule(loan_id, schedule)
                logger.info("Penalties updated for loan %s as of %s", loan_id, today,
                            extra={'loan_id': loan_id})
        return changed

    def make_payment(self, loan_id, amount, today=None) -> AllocationResult:
        """Apply an incoming payment to a loan.

        Penalties are brought up to date, the payment is allocated, and
        penalties are recomputed against the new outstanding amounts. Any
        installment the payment now covers in full is settled, then
        everything is saved in one transaction.

        Returns:
            AllocationResult of the allocation.

        Raises:
            InvalidAmountError: If amount is not positive.
            LoanNotFoundError: If the loan does not exist.
            LoanClosedError: If the loan is already fully repaid.
            NoActiveScheduleError: If the loan has no schedule.
        """
        amount = self.allocator.validate_amount(amount)
        today = today or date.today()

        with self.locks.hold(loan_id):
            schedule = self.db.load_schedule(loan_id)
            if schedule.is_empty:
                raise NoActiveScheduleError(loan_id)
            if schedule.is_closed:
                raise LoanClosedError(loan_id)

            self.penalty_engine.accrue(schedule, today)
            result = self.allocator.allocate(schedule, amount, today)
            self.penalty_engine.accrue(schedule, today)
            self.allocator.settle_covered(schedule, today, result)

            with self.db.transaction():
                self.db.save_schedule(loan_id, schedule)
                self.db.add_payment_record(
                    loan_id, amount, result.applied, result.surplus_returned, today,
                    notes=self.report.allocation_message(result)
                )
                if schedule.is_closed:
                    self.db.update_loan_status(loan_id, "closed")

        logger.info("Payment of %s applied to loan %s (%d installment(s) settled)",
                    amount, loan_id, len(result.settled_sequences),
                    extra={'loan_id': loan_id, 'amount': amount})
        if schedule.is_closed:
            self.locks.forget(loan_id)
            logger.info("Loan %s fully repaid", loan_id, extra={'loan_id': loan_id})
        return result

    def sweep_penalties(self, today=None, on_change=None):
        """Accrue penalties on every active loan, one lock at a time.

        Args:
            today: Evaluation date (default: today).
            on_change: Optional callable invoked with each changed loan id.

        Returns:
            List of loan ids whose penalties changed.
        """
        today = today or date.today()
        changed_ids = []
        for loan_id in self.db.get_active_loan_ids():
            try:
                changed = self.accrue_penalties(loan_id, today)
            except LoanBookError as e:
                logger.warning("Skipping loan %s in penalty sweep: %s", loan_id, e,
                               extra={'loan_id': loan_id})
                continue
            if changed:
                changed_ids.append(loan_id)
                if on_change is not None:
                    on_change(loan_id)
        return changed_ids

    def get_summary(self, loan_id, today=None) -> ScheduleSummary:
        """Summary figures (remaining debt, overdue, penalties, next payment)."""
        today = today or date.today()
        with self.locks.hold(loan_id):
            schedule = self.db.load_schedule(loan_id)
        return self.report.summarize(schedule, today)
