"""
API Error Types
Standard error hierarchy for the Happy Thoughts API.

Every error carries an internal diagnostic message (logged, and returned
outside production) and a public message that is always safe to show.
"""

from typing import Any, Dict, Optional


class ApiError(Exception):
    """Base error with an HTTP status code"""

    def __init__(self, message: str, status_code: int = 500,
                 public_message: str = "An unexpected error occurred"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.public_message = public_message

    def to_dict(self, expose_internal: bool = True) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.public_message,
            "response": self.message if expose_internal else None
        }


class ValidationError(ApiError):
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Validation error: {message}", 400, message)
        self.details = details or {}

    def to_dict(self, expose_internal: bool = True) -> Dict[str, Any]:
        data = super().to_dict(expose_internal)
        data["details"] = self.details
        return data


class NotFoundError(ApiError):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            f"{resource} not found",
            404,
            f"The requested {resource.lower()} could not be found"
        )


class AuthenticationError(ApiError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(f"Authentication error: {message}", 401, message)


class AuthorizationError(ApiError):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(f"Authorization error: {message}", 403, message)


class DatabaseError(ApiError):
    """Storage failure; the underlying cause is chained, never serialised"""

    def __init__(self, operation: str = "database operation"):
        super().__init__(
            f"Database error during {operation}",
            500,
            "Something went wrong with our database"
        )
        self.operation = operation
