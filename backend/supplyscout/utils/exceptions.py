"""
Custom business exceptions for the API layer.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across all API endpoints
HOW: Custom exception classes with error codes and messages
"""

from typing import Optional, List, Dict, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class SessionNotFoundException(BusinessException):
    """Raised when a chat session is not found."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id}
        )


class ValidationException(BusinessException):
    """Raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )


class ToolCallParseError(Exception):
    """
    Raised when a tool-call candidate was found in model output but could
    not be turned into a complete (name, arguments) pair.

    The raw candidate is kept for logging.
    """

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


class EmailNotConfiguredError(Exception):
    """Email provider credentials are missing."""
    pass


class EmailDeliveryError(Exception):
    """Email provider rejected the request or could not be reached."""
    pass
