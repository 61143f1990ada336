"""
Custom Exceptions for Agile Flow
================================

Services raise these; the handlers registered in agileflow.main turn them
into ``{"error": message}`` responses with the mapped HTTP status.

Usage:
    from agileflow.core.exceptions import TaskNotFoundError, PermissionDeniedError

    if not task:
        raise TaskNotFoundError(task_id)
    if not can_delete_task(actor, task):
        raise PermissionDeniedError()
"""

from typing import Optional, Any, Dict


class AgileFlowError(Exception):
    """Base exception for all Agile Flow errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(AgileFlowError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(AgileFlowError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""

    def __init__(self):
        super().__init__("Token has expired")
        self.code = "TOKEN_EXPIRED"


class InvalidTokenError(AuthenticationError):
    """JWT token is invalid"""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class PermissionDeniedError(AgileFlowError):
    """Actor's role or relation does not allow this action"""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, code="PERMISSION_DENIED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(AgileFlowError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class UserNotFoundError(ResourceNotFoundError):
    """User not found"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class TaskNotFoundError(ResourceNotFoundError):
    """Task not found"""

    def __init__(self, task_id: str):
        super().__init__("Task", task_id)


class MessageNotFoundError(ResourceNotFoundError):
    """Message not found"""

    def __init__(self, message_id: str):
        super().__init__("Message", message_id)


# ============================================
# State Errors
# ============================================

class ConflictError(AgileFlowError):
    """Write conflicts with existing data (e.g. duplicate email)"""

    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")


class StorageError(AgileFlowError):
    """Record store rejected or failed an operation"""

    status_code = 500

    def __init__(self, message: str = "Database operation failed", operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, code="STORAGE_ERROR", details=details)


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: AgileFlowError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {"error": error.message}
