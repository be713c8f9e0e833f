"""LoanBook: annuity schedules, late penalties and payment allocation."""

__version__ = "0.1.0"
