"""
SwarnaBill - Custom Exceptions
===============================
Business-level exceptions that can be caught and converted to HTTP responses.
"""

from fastapi import HTTPException, status


class SwarnaBillError(Exception):
    """Base exception for all business logic errors."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Something went wrong."):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(SwarnaBillError):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(SwarnaBillError):
    """Raised when user lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(SwarnaBillError):
    """Raised when a requested resource doesn't exist."""
    status_code = status.HTTP_404_NOT_FOUND


class RateNotFoundError(SwarnaBillError):
    """No active rate for a metal type. Aborts the whole bill / exchange."""

    def __init__(self, metal_type: str):
        self.metal_type = metal_type
        super().__init__(f"Rate not found for {metal_type}. Please set rates first.")


class InvalidPurityError(SwarnaBillError):
    """Purity is not priced by the active rate for this metal."""

    def __init__(self, metal_type: str, purity: str):
        self.metal_type = metal_type
        self.purity = purity
        super().__init__(f"Invalid purity '{purity}' for {metal_type}")


class InvalidStateError(SwarnaBillError):
    """Lifecycle transition not allowed (archived bill, converted exchange, ...)."""
    status_code = status.HTTP_409_CONFLICT


class DuplicateNumberError(SwarnaBillError):
    """Raised for unique constraint violations on bill / exchange numbers."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Number already in use: {number}")


class PersistenceError(SwarnaBillError):
    """Ledger write/read failure. The caller's transaction must be rolled back."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        msg = f"{operation} failed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


def raise_http(error: SwarnaBillError, status_code: int = None):
    """Convert a business exception to an HTTP exception."""
    raise HTTPException(status_code=status_code or error.status_code, detail=error.message)
