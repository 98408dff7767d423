"""
Custom Exceptions
Application-specific exception classes
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class AppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        code: str = "app_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)


class ValidationException(AppException):
    """Validation error exception"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "validation_error",
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            details=details,
        )


class PayloadTooLargeException(ValidationException):
    """Uploaded file exceeds the configured size limit"""

    def __init__(
        self,
        max_size_bytes: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["max_size_bytes"] = max_size_bytes
        super().__init__(
            message="File too large",
            details=details,
            code="payload_too_large",
        )


class InvalidOperationException(AppException):
    """Request is well-formed but not allowed in the current state"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="invalid_operation",
            status_code=400,
            details=details,
        )


class AuthenticationException(AppException):
    """Authentication error exception"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="authentication_error",
            status_code=401,
            details=details,
        )


class AuthorizationException(AppException):
    """Authorization error exception"""

    def __init__(
        self,
        message: str = "Permission denied",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="authorization_error",
            status_code=403,
            details=details,
        )


class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource: str = "Resource",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"{resource} not found",
            code="not_found",
            status_code=404,
            details=details,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="conflict",
            status_code=409,
            details=details,
        )


class BackingStoreException(AppException):
    """Unexpected failure from the relational store, blob store or identity provider"""

    def __init__(
        self,
        message: str,
        store: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if store:
            details["store"] = store
        super().__init__(
            message=message,
            code="backing_store_error",
            status_code=500,
            details=details,
        )
