"""Services package for LoanBook business logic.

The three schedule engines (amortization, penalties, payment allocation)
are pure in-memory transformations of a Schedule. LoanService wraps them
with persistence and per-loan locking; PenaltySweeper runs accrual
periodically.
"""

from .amortization import AmortizationCalculator, generate_schedule
from .penalty_engine import PenaltyEngine, accrue_penalties
from .payment_allocator import PaymentAllocator, allocate_payment
from .locking import LoanLockRegistry
from .loan_service import LoanService
from .penalty_sweeper import PenaltySweeper

__all__ = ['AmortizationCalculator', 'generate_schedule', 'PenaltyEngine', 'accrue_penalties',
           'PaymentAllocator', 'allocate_payment', 'LoanLockRegistry', 'LoanService',
           'PenaltySweeper']
