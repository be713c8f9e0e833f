from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterator, List, Optional

from loanbook.config import CURRENCY_QUANTUM

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert an int, str or Decimal amount to Decimal.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1") rather
    than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value) -> Decimal:
    """Round an amount to cents, half up."""
    return to_decimal(value).quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP)


def as_date(value) -> date:
    """Drop the time-of-day part of a datetime; pass dates through."""
    if isinstance(value, datetime):
        return value.date()
    return value


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


@dataclass(frozen=True)
class LoanTerms:
    """Parameters a schedule is generated from. Immutable."""
    principal: Decimal
    term_months: int
    annual_rate: Decimal
    start_date: date

    @property
    def monthly_rate(self) -> Decimal:
        return self.annual_rate / Decimal(100) / Decimal(12)


@dataclass
class Installment:
    """One dated obligation within a schedule.

    ``penalty`` and ``penalty_days`` are live figures recomputed by the
    penalty engine. Once the installment is settled the penalty that was
    collected moves to ``settled_penalty`` and the live figures drop to 0.
    """
    sequence: int
    due_date: date
    payment: Decimal
    principal: Decimal
    interest: Decimal
    remaining_balance: Decimal
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_amount: Decimal = ZERO
    paid_date: Optional[date] = None
    penalty: Decimal = ZERO
    penalty_days: int = 0
    settled_penalty: Decimal = ZERO

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID

    @property
    def outstanding(self) -> Decimal:
        """Scheduled amount not yet covered; the base for penalties."""
        return max(self.payment - self.paid_amount, ZERO)

    @property
    def total_due(self) -> Decimal:
        """Scheduled payment plus penalty, less what has been paid."""
        return self.payment + self.penalty + self.settled_penalty - self.paid_amount

    def is_overdue(self, on_date) -> bool:
        return not self.is_paid and self.due_date < as_date(on_date)


@dataclass
class Schedule:
    """Ordered installments of one loan."""
    terms: Optional[LoanTerms] = None
    installments: List[Installment] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.installments)

    def __iter__(self) -> Iterator[Installment]:
        return iter(self.installments)

    def __getitem__(self, index) -> Installment:
        return self.installments[index]

    @property
    def is_empty(self) -> bool:
        return not self.installments

    @property
    def is_closed(self) -> bool:
        """True once every installment is paid."""
        return bool(self.installments) and all(i.is_paid for i in self.installments)

    @property
    def monthly_payment(self) -> Decimal:
        return self.installments[0].payment if self.installments else ZERO

    def unpaid(self) -> List[Installment]:
        return [i for i in self.installments if not i.is_paid]

    def next_unpaid(self) -> Optional[Installment]:
        for inst in self.installments:
            if not inst.is_paid:
                return inst
        return None

    def last_unpaid(self) -> Optional[Installment]:
        for inst in reversed(self.installments):
            if not inst.is_paid:
                return inst
        return None


@dataclass
class AllocationLine:
    """What a single payment did to one installment."""
    sequence: int
    applied: Decimal
    status: InstallmentStatus
    paid_amount: Decimal
    remaining_due: Decimal
    settled: bool


@dataclass
class AllocationResult:
    """Outcome of applying one payment to a schedule."""
    amount: Decimal
    evaluation_date: date
    lines: List[AllocationLine] = field(default_factory=list)
    surplus_applied: Decimal = ZERO
    surplus_target: Optional[int] = None
    surplus_returned: Decimal = ZERO

    @property
    def applied(self) -> Decimal:
        return sum((line.applied for line in self.lines), ZERO) + self.surplus_applied

    @property
    def settled_sequences(self) -> List[int]:
        return [line.sequence for line in self.lines if line.settled]


@dataclass
class ScheduleSummary:
    """Figures shown next to a schedule."""
    remaining_debt: Decimal
    overdue_amount: Decimal
    total_penalty: Decimal
    next_installment: Optional[Installment]
    next_due_amount: Decimal
    paid_count: int
    is_closed: bool
