"""Custom exceptions for LoanBook application."""


class LoanBookError(Exception):
    """Base exception for all LoanBook errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class InvalidLoanTermsError(LoanBookError):
    """Raised when loan terms cannot produce a schedule."""

    def __init__(self, reason: str, **fields):
        message = f"Invalid loan terms: {reason}"
        super().__init__(message, {k: str(v) for k, v in fields.items()})


class InvalidAmountError(LoanBookError):
    """Raised when a payment amount is zero or negative."""

    def __init__(self, amount):
        message = f"Payment amount must be positive, got {amount}"
        super().__init__(message, {'amount': str(amount)})


class NoActiveScheduleError(LoanBookError):
    """Raised when an operation needs a schedule but none is present."""

    def __init__(self, loan_id: int = None):
        details = {}
        message = "No active payment schedule"
        if loan_id is not None:
            details['loan_id'] = loan_id
            message = f"Loan {loan_id} has no active payment schedule"
        super().__init__(message, details)


class LoanNotFoundError(LoanBookError):
    """Raised when a loan cannot be found."""

    def __init__(self, loan_id: int = None):
        details = {}
        message = "Loan not found"
        if loan_id is not None:
            details['loan_id'] = loan_id
            message = f"Loan {loan_id} not found"
        super().__init__(message, details)


class LoanClosedError(LoanBookError):
    """Raised when a payment is made against a fully repaid loan."""

    def __init__(self, loan_id: int):
        message = f"Loan {loan_id} is already closed"
        super().__init__(message, {'loan_id': loan_id})


class LoanLimitError(LoanBookError):
    """Raised when loan terms fall outside the lender's business limits."""

    def __init__(self, field: str, value, minimum, maximum):
        details = {
            'field': field,
            'value': str(value),
            'minimum': str(minimum),
            'maximum': str(maximum)
        }
        message = f"{field} {value} is outside the allowed range [{minimum}, {maximum}]"
        super().__init__(message, details)


class DatabaseError(LoanBookError):
    """Raised when a database operation fails."""
    pass


class TransactionError(DatabaseError):
    """Raised when a database transaction fails to complete."""
    pass
