"""Amortization schedule calculator for LoanBook.

Builds the installment plan of a fixed-rate annuity loan. The level
payment comes from the standard annuity formula::

    payment = P * r * (1 + r)^n / ((1 + r)^n - 1)

with ``r`` the monthly rate and ``n`` the term in months; a zero rate
degrades to straight-line repayment ``P / n``.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from dateutil.relativedelta import relativedelta

from loanbook.config import BALANCE_EPSILON, BILLING_DAY
from loanbook.data_structures import (
    ZERO,
    Installment,
    LoanTerms,
    Schedule,
    as_date,
    quantize_money,
    to_decimal,
)
from loanbook.exceptions import InvalidLoanTermsError
from loanbook.logging import get_logger

logger = get_logger(__name__)


class AmortizationCalculator:
    """Generates annuity schedules. Holds no state between calls."""

    def __init__(self, billing_day: int = BILLING_DAY):
        self.billing_day = billing_day

    @staticmethod
    def validate_terms(principal, term_months, annual_rate, start_date) -> LoanTerms:
        """Check structural preconditions and normalise the inputs.

        Business limits (minimum amount, maximum term, ...) are the host's
        concern; see ``LoanService.check_loan_limits``.

        Raises:
            InvalidLoanTermsError: If any parameter is unusable.
        """
        try:
            principal = to_decimal(principal)
            annual_rate = to_decimal(annual_rate)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidLoanTermsError(
                "principal and rate must be numbers",
                principal=principal, annual_rate=annual_rate
            )

        if not principal.is_finite() or principal <= 0:
            raise InvalidLoanTermsError("principal must be positive", principal=principal)
        if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months < 1:
            raise InvalidLoanTermsError("term must be a positive whole number of months",
                                        term_months=term_months)
        if not annual_rate.is_finite() or annual_rate < 0:
            raise InvalidLoanTermsError("annual rate must not be negative", annual_rate=annual_rate)
        if not isinstance(start_date, date):
            raise InvalidLoanTermsError("start date must be a calendar date", start_date=start_date)

        return LoanTerms(
            principal=principal,
            term_months=term_months,
            annual_rate=annual_rate,
            start_date=as_date(start_date),
        )

    @staticmethod
    def level_payment(principal: Decimal, monthly_rate: Decimal, term_months: int) -> Decimal:
        """Return the unrounded level monthly payment."""
        if monthly_rate == 0:
            return principal / Decimal(term_months)
        factor = (1 + monthly_rate) ** term_months
        return principal * monthly_rate * factor / (factor - 1)

    def due_date_for(self, start_date: date, sequence: int) -> date:
        """Due date of installment ``sequence`` (1-based).

        The day field is pinned to the billing day before months are added,
        so short months never pull later due dates forward.
        """
        anchor = start_date.replace(day=self.billing_day)
        return anchor + relativedelta(months=sequence)

    def generate(self, principal, term_months, annual_rate, start_date) -> Schedule:
        """Build the full schedule for a new loan.

        Args:
            principal: Amount lent.
            term_months: Number of monthly installments.
            annual_rate: Nominal annual rate in percent (12.5 means 12.5%).
            start_date: Date the loan was issued.

        Returns:
            A Schedule with every installment pending.

        Raises:
            InvalidLoanTermsError: If the terms fail structural checks.
        """
        terms = self.validate_terms(principal, term_months, annual_rate, start_date)
        rate = terms.monthly_rate
        payment = quantize_money(self.level_payment(terms.principal, rate, terms.term_months))

        installments = []
        balance = terms.principal
        for sequence in range(1, terms.term_months + 1):
            interest = quantize_money(balance * rate)
            principal_part = payment - interest

            # Final installment retires whatever the rounded payments left over
            if sequence == terms.term_months or principal_part > balance:
                principal_part = balance

            balance -= principal_part
            if balance < BALANCE_EPSILON:
                balance = ZERO

            installments.append(Installment(
                sequence=sequence,
                due_date=self.due_date_for(terms.start_date, sequence),
                payment=principal_part + interest,
                principal=principal_part,
                interest=interest,
                remaining_balance=balance,
            ))

        logger.debug(
            "Generated %d installments of %s for principal %s at %s%%",
            terms.term_months, payment, terms.principal, terms.annual_rate
        )
        return Schedule(terms=terms, installments=installments)


def generate_schedule(principal, term_months, annual_rate, start_date) -> Schedule:
    """Module-level shortcut for ``AmortizationCalculator().generate``."""
    return AmortizationCalculator().generate(principal, term_months, annual_rate, start_date)
