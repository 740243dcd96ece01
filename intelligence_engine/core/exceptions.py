"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class DocumentNotFoundError(AppError):
    """Raised when a document is not found."""
    pass


class ReconciliationError(AppError):
    """Raised when a single extracted field cannot be written to the knowledge store."""

    def __init__(self, message: str, field_path: str = None, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.field_path = field_path
