"""
Report generation module for LoanBook.
Builds the schedule table, the summary figures shown beside it, and the
confirmation text for a processed payment.
"""
import pandas as pd

from loanbook.config import DATE_FORMAT_STORAGE
from loanbook.data_structures import (
    ZERO,
    AllocationResult,
    Schedule,
    ScheduleSummary,
    as_date,
    quantize_money,
)

SCHEDULE_COLUMNS = [
    "Number", "Due Date", "Payment", "Principal", "Interest", "Remaining",
    "Status", "Paid", "Paid Date", "Penalty", "Penalty Days", "Total Due",
]


def format_money(amount) -> str:
    """Two decimals with thousands separators, e.g. 23,653.47."""
    return f"{quantize_money(amount):,.2f}"


class ScheduleReport:
    def __init__(self, penalty_engine=None):
        if penalty_engine is None:
            # Imported here to avoid a cycle through loanbook.services
            from loanbook.services.penalty_engine import PenaltyEngine
            penalty_engine = PenaltyEngine()
        self.penalty_engine = penalty_engine

    def to_dataframe(self, schedule: Schedule) -> pd.DataFrame:
        """One row per installment, amounts rounded to cents."""
        rows = []
        for inst in schedule:
            rows.append({
                "Number": inst.sequence,
                "Due Date": inst.due_date.strftime(DATE_FORMAT_STORAGE),
                "Payment": quantize_money(inst.payment),
                "Principal": quantize_money(inst.principal),
                "Interest": quantize_money(inst.interest),
                "Remaining": quantize_money(inst.remaining_balance),
                "Status": inst.status.value,
                "Paid": quantize_money(inst.paid_amount),
                "Paid Date": inst.paid_date.strftime(DATE_FORMAT_STORAGE) if inst.paid_date else None,
                "Penalty": quantize_money(inst.penalty),
                "Penalty Days": inst.penalty_days,
                "Total Due": quantize_money(max(inst.total_due, ZERO)),
            })
        return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)

    def summarize(self, schedule: Schedule, today) -> ScheduleSummary:
        """Summary figures as of ``today``.

        Penalties are evaluated fresh for ``today`` so the summary does not
        depend on when the last accrual ran.
        """
        today = as_date(today)
        remaining = ZERO
        overdue = ZERO
        total_penalty = ZERO
        unpaid = schedule.unpaid()

        for inst in unpaid:
            penalty, _ = self.penalty_engine.penalty_for(inst, today)
            remaining += inst.outstanding
            total_penalty += penalty
            if inst.is_overdue(today):
                overdue += inst.outstanding

        next_inst = schedule.next_unpaid()
        next_due = ZERO
        if next_inst is not None:
            penalty, _ = self.penalty_engine.penalty_for(next_inst, today)
            next_due = max(next_inst.payment + penalty - next_inst.paid_amount, ZERO)
        paid_count = len(schedule) - len(unpaid)

        return ScheduleSummary(
            remaining_debt=quantize_money(remaining),
            overdue_amount=quantize_money(overdue),
            total_penalty=quantize_money(total_penalty),
            next_installment=next_inst,
            next_due_amount=quantize_money(next_due),
            paid_count=paid_count,
            is_closed=schedule.is_closed,
        )

    @staticmethod
    def allocation_message(result: AllocationResult) -> str:
        """Human-readable confirmation of a processed payment."""
        parts = []
        for line in result.lines:
            if line.settled:
                parts.append(f"Installment #{line.sequence} fully settled.")
            else:
                parts.append(
                    f"Paid {format_money(line.applied)}. "
                    f"Remaining on installment #{line.sequence}: {format_money(line.remaining_due)}."
                )
        if result.surplus_applied > 0:
            parts.append(
                f"Overpayment of {format_money(result.surplus_applied)} "
                f"reduces installment #{result.surplus_target}."
            )
        if result.surplus_returned > 0:
            parts.append(f"Surplus of {format_money(result.surplus_returned)} returned to payer.")
        if not parts:
            return "Payment processed."
        return " ".join(parts)
