"""Business logic engine for LoanBook.

This module provides the LoanEngine class which acts as a facade over
the focused service classes in loanbook/services/.

Service Classes:
    - LoanService: Loan issuance, payments, penalty accrual
    - PenaltySweeper: Periodic penalty accrual across active loans
    - ScheduleReport: Tables, summaries and confirmation text
"""
from loanbook.config import EngineSettings
from loanbook.database import DatabaseManager
from loanbook.logging import get_logger, setup_logging
from loanbook.reports import ScheduleReport
from loanbook.services import LoanLockRegistry, LoanService, PenaltySweeper

logger = get_logger(__name__)


class LoanEngine:
    """Entry point for a host application, interfacing with DatabaseManager.

    Attributes:
        db: DatabaseManager instance for data persistence.
        locks: LoanLockRegistry shared by all mutators of this database.
        loan_service: LoanService instance (lazy-loaded).
        sweeper: PenaltySweeper instance (lazy-loaded).
    """

    def __init__(self, db_manager, settings: EngineSettings = None):
        self.db = db_manager
        self.settings = settings or EngineSettings()
        self.locks = LoanLockRegistry()
        self._loan_service = None
        self._sweeper = None
        self._report = None

    @classmethod
    def from_settings(cls, settings: EngineSettings = None) -> "LoanEngine":
        """Open the configured database and set up logging."""
        settings = settings or EngineSettings.from_env()
        setup_logging(settings.log_level, settings.log_format)
        return cls(DatabaseManager(settings.db_name), settings)

    @property
    def loan_service(self):
        """Lazy-load LoanService instance."""
        if self._loan_service is None:
            self._loan_service = LoanService(self.db, self.locks)
        return self._loan_service

    @property
    def report(self):
        """Lazy-load ScheduleReport instance."""
        if self._report is None:
            self._report = ScheduleReport(self.loan_service.penalty_engine)
        return self._report

    @property
    def sweeper(self):
        """Lazy-load PenaltySweeper instance."""
        if self._sweeper is None:
            self._sweeper = PenaltySweeper(self.loan_service, self.settings.sweep_interval_seconds)
        return self._sweeper

    def check_loan_limits(self, principal, term_months):
        return self.loan_service.check_loan_limits(principal, term_months)

    def check_payment(self, loan_id, amount):
        return self.loan_service.check_payment(loan_id, amount)

    def issue_loan(self, principal, term_months, start_date=None, annual_rate=None, borrower=None):
        """Issue a new loan. Delegates to LoanService."""
        return self.loan_service.issue_loan(principal, term_months, start_date, annual_rate, borrower)

    def make_payment(self, loan_id, amount, today=None):
        """Apply a payment and return ``(result, confirmation_text)``."""
        result = self.loan_service.make_payment(loan_id, amount, today)
        return result, self.report.allocation_message(result)

    def accrue_penalties(self, loan_id, today=None):
        return self.loan_service.accrue_penalties(loan_id, today)

    def sweep_penalties(self, today=None, on_change=None):
        return self.loan_service.sweep_penalties(today, on_change)

    def get_schedule(self, loan_id):
        return self.loan_service.get_schedule(loan_id)

    def get_schedule_df(self, loan_id):
        return self.loan_service.get_schedule_df(loan_id)

    def get_payments_df(self, loan_id):
        return self.db.get_payments_df(loan_id)

    def get_summary(self, loan_id, today=None):
        return self.loan_service.get_summary(loan_id, today)

    def start_penalty_sweeper(self, on_change=None):
        """Start hourly (per settings) penalty accrual on a background thread."""
        if on_change is not None:
            self.sweeper.on_change = on_change
        self.sweeper.start()

    def shutdown(self):
        """Stop the sweeper and close the database."""
        if self._sweeper is not None:
            self._sweeper.stop()
        self.db.close()
