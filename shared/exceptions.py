"""
Exception hierarchy for the Grocery Store auth client.

This module defines structured exceptions with error codes, context information
and user-facing messages. Callers of the request executor only ever see the three
RequestError kinds: transport, decoding and unauthorized. Business failures
(validation, domain errors) travel inside the decoded response envelope instead.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the auth client."""

    # Authentication Errors (1000-1099)
    AUTH_SESSION_EXPIRED = "AUTH_1001"
    AUTH_REFRESH_TOKEN_MISSING = "AUTH_1002"
    AUTH_REFRESH_REJECTED = "AUTH_1003"
    AUTH_RETRY_REJECTED = "AUTH_1004"

    # Network and Communication Errors (2000-2099)
    NETWORK_CONNECTION_FAILED = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"

    # Response Decoding Errors (3000-3099)
    DECODING_INVALID_JSON = "DECODING_3001"
    DECODING_SHAPE_MISMATCH = "DECODING_3002"
    DECODING_EMPTY_BODY = "DECODING_3003"

    # Credential Storage Errors (4000-4099)
    STORAGE_UNAVAILABLE = "STORAGE_4001"
    STORAGE_CORRUPTED = "STORAGE_4002"

    # Configuration Errors (8000-8099)
    CONFIG_INVALID_VALUE = "CONFIG_8001"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class GroceryClientError(Exception):
    """
    Base exception class for all auth client errors.

    Provides structured error information including error codes, context,
    and a message suitable for showing to the user.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class RequestError(GroceryClientError):
    """Base class for failures surfaced by the request executor."""

    kind = "request"


class TransportError(RequestError):
    """No HTTP response was obtained (connection, DNS, TLS or timeout)."""

    kind = "transport"

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED, **kwargs):
        kwargs.setdefault('user_message', "Unable to reach the server. Check your connection and try again.")
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class DecodingError(RequestError):
    """The response body did not match the expected envelope shape."""

    kind = "decoding"

    def __init__(self, reason: str, error_code: ErrorCode = ErrorCode.DECODING_SHAPE_MISMATCH, **kwargs):
        self.reason = reason or "unknown decoding failure"
        kwargs.setdefault('user_message', f"Failed to decode server response: {self.reason}")
        super().__init__(
            message=f"Failed to decode server response: {self.reason}",
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class UnauthorizedError(RequestError):
    """The session could not be restored by a token refresh."""

    kind = "unauthorized"

    def __init__(self, message: str = "Session expired", error_code: ErrorCode = ErrorCode.AUTH_SESSION_EXPIRED, **kwargs):
        kwargs.setdefault('user_message', "Session expired. Please log in again.")
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


class TokenStorageError(GroceryClientError):
    """Secure storage backend failure. Never escapes the credential store."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.STORAGE_UNAVAILABLE, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.LOW,
            **kwargs
        )


class ConfigurationError(GroceryClientError):
    """Invalid client configuration."""

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if setting:
            context['setting'] = setting

        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIG_INVALID_VALUE,
            severity=ErrorSeverity.HIGH,
            context=context,
            **kwargs
        )
