# shop_ledger/exceptions.py

class LedgerError(Exception):
    """Base exception for the shop ledger."""

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or "An error occurred in the shop ledger"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(LedgerError):
    """Exception raised for configuration errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Configuration error"
        super().__init__(message, code, details)


class ValidationError(LedgerError):
    """Exception raised for malformed input (negative amounts, empty text, bad quantities)."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Validation error"
        super().__init__(message, code, details)


class NotFoundError(LedgerError):
    """Exception raised when a record is absent or not owned by the caller."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Resource not found"
        super().__init__(message, code, details)


class InsufficientStockError(LedgerError):
    """Exception raised when a stock movement would take quantity below zero."""

    def __init__(self, message=None, code=None, details=None, available=None, requested=None):
        message = message or "Insufficient stock"
        self.available = available
        self.requested = requested
        super().__init__(message, code, details)


class ConflictError(LedgerError):
    """Exception raised when a record changed underneath a conditional update."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Concurrent modification detected"
        super().__init__(message, code, details)


class PartialCommitError(LedgerError):
    """Exception raised when a compound write stopped after persisting its first step.

    Attributes:
        sale: The sale record that was persisted
        pending_delta: Stock delta that still has to be applied (0 if none)
        stock_applied: Whether the stock movement itself reached the store
    """

    def __init__(self, message=None, code=None, details=None, sale=None,
                 pending_delta=0, stock_applied=False):
        message = message or "Compound write partially committed"
        self.sale = sale
        self.pending_delta = pending_delta
        self.stock_applied = stock_applied
        super().__init__(message, code, details)


class StoreUnavailableError(LedgerError):
    """Exception raised for record store failures (network, auth, backend errors)."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Record store unavailable"
        super().__init__(message, code, details)


class NotAuthenticatedError(StoreUnavailableError):
    """Exception raised when the store has no authenticated owner."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Not authenticated"
        super().__init__(message, code, details)


class UnsupportedQueryError(LedgerError):
    """Exception raised when a store cannot express a requested filter."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Query not supported by this store"
        super().__init__(message, code, details)
