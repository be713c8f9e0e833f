"""Centralized configuration for LoanBook.

This module contains all magic numbers, default values, and business rule
constants used by the schedule engines and the host services.
"""
import os
from dataclasses import dataclass
from decimal import Decimal

# =============================================================================
# LOAN DEFAULTS
# =============================================================================

# Default nominal annual interest rate, in percent (12.5%)
DEFAULT_INTEREST_RATE = Decimal("12.5")

# Day of month on which every installment falls due
BILLING_DAY = 28

# =============================================================================
# PENALTIES
# =============================================================================

# Simple daily penalty rate applied to the outstanding installment amount (0.1%)
DAILY_PENALTY_RATE = Decimal("0.001")

# Penalty changes at or below this amount are not written back
PENALTY_TOLERANCE = Decimal("0.01")

# Interval between periodic penalty sweeps (one hour)
PENALTY_SWEEP_INTERVAL_SECONDS = 60 * 60

# =============================================================================
# NUMERICS
# =============================================================================

# Smallest currency unit; amounts are rounded to this at emission
CURRENCY_QUANTUM = Decimal("0.01")

# Balances below this are snapped to zero
BALANCE_EPSILON = Decimal("0.01")

# =============================================================================
# BUSINESS RULES
# =============================================================================

# Minimum loan amount allowed
MIN_LOAN_AMOUNT = Decimal("10000")

# Maximum loan amount allowed
MAX_LOAN_AMOUNT = Decimal("5000000")

# Minimum loan duration in months
MIN_LOAN_DURATION = 6

# Maximum loan duration in months
MAX_LOAN_DURATION = 60

# =============================================================================
# DATE FORMATS
# =============================================================================

# Date format for storage (ISO 8601)
DATE_FORMAT_STORAGE = "%Y-%m-%d"

# =============================================================================
# RUNTIME
# =============================================================================

DEFAULT_DB_NAME = "loanbook.db"


@dataclass
class EngineSettings:
    """Process-level settings for a LoanBook host."""

    db_name: str = DEFAULT_DB_NAME
    sweep_interval_seconds: float = PENALTY_SWEEP_INTERVAL_SECONDS
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Create settings from environment variables."""
        return cls(
            db_name=os.getenv("LOANBOOK_DB", DEFAULT_DB_NAME),
            sweep_interval_seconds=float(
                os.getenv("LOANBOOK_SWEEP_INTERVAL", str(PENALTY_SWEEP_INTERVAL_SECONDS))
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
