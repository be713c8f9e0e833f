"""Result pattern for host-facing checks in LoanBook.

Form-style callers (loan application screens, payment entry) want a
yes/no answer with a message rather than an exception. Service methods
that validate user input return a ``Result``; the schedule engines
themselves raise ``LoanBookError`` subclasses.
"""
from dataclasses import dataclass
from typing import Any, Optional, TypeVar, Generic

T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    """Represents the outcome of a check or host operation.

    Attributes:
        success: Whether the operation succeeded.
        value: The return value on success, None on failure.
        error: Error message on failure, None on success.
        error_type: One of the ``ErrorType`` constants.

    Usage:
        result = service.check_loan_limits(principal, term)
        if not result:
            show_error(result.error)
    """
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, value: T = None) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, error_type: str = None) -> 'Result[T]':
        """Create a failure result."""
        return cls(success=False, error=error, error_type=error_type)

    @classmethod
    def from_error(cls, exc: Exception, error_type: str) -> 'Result[T]':
        """Wrap a raised LoanBook error as a failure result."""
        message = getattr(exc, 'message', None) or str(exc)
        return cls(success=False, error=message, error_type=error_type)

    def __bool__(self) -> bool:
        return self.success

    def unwrap(self) -> T:
        """Get the value, raising ValueError if the operation failed."""
        if not self.success:
            raise ValueError(f"Result unwrap failed: {self.error}")
        return self.value

    def unwrap_or(self, default: Any) -> T:
        """Get the value or a default if the operation failed."""
        return self.value if self.success else default


class ErrorType:
    """Standard error type constants."""
    NOT_FOUND = "NOT_FOUND"
    CLOSED = "CLOSED"
    VALIDATION = "VALIDATION"
    LIMIT = "LIMIT"
