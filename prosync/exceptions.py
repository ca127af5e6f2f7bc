"""
Centralized exception hierarchy for ProSync Suite.

Every service raises one of these; the API layer turns them into a JSON
error envelope with a matching HTTP status (see ``exception_to_http_status``).
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Base Exception
# =============================================================================


class ProSyncError(RuntimeError):
    """
    Base exception for all ProSync errors.

    Attributes:
        message: Human-readable error message.
        detail: Additional error details (optional).
        error_code: Machine-readable error code.
        request_id: Unique identifier for the request (optional).
    """

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        error_code: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.error_code = error_code or f"prosync_{self.__class__.__name__.lower()}"
        self.request_id = request_id or str(uuid.uuid4())

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        if self.request_id:
            result["request_id"] = self.request_id
        return result

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message

    def log(self, level: int = logging.ERROR) -> None:
        """Log the exception with structured data."""
        logger.log(
            level,
            self.message,
            extra={
                "error_code": self.error_code,
                "detail": self.detail,
                "request_id": self.request_id,
                "exception_type": self.__class__.__name__,
            },
        )


# =============================================================================
# Request Errors
# =============================================================================


class ValidationError(ProSyncError):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        detail: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.field = field
        full_message = f"{field}: {message}" if field else message
        super().__init__(
            full_message,
            detail=detail,
            error_code="validation_error",
            request_id=request_id,
        )


class AuthenticationRequiredError(ProSyncError):
    """
    Raised when a user-scoped operation is called without a user id.

    HTTP Status: 401 Unauthorized
    """

    def __init__(self, message: str = "User identification required", *, request_id: str | None = None) -> None:
        super().__init__(
            message,
            detail="Send the X-User-ID header",
            error_code="authentication_required",
            request_id=request_id,
        )


class RecordNotFoundError(ProSyncError):
    """
    Raised when a record does not exist (or is not visible to the caller).

    HTTP Status: 404 Not Found
    """

    def __init__(
        self,
        resource_type: str,
        resource_id: str | None = None,
        *,
        request_id: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        detail = f"{resource_type} with ID {resource_id!r} not found" if resource_id else None
        super().__init__(
            f"{resource_type} not found",
            detail=detail,
            error_code="not_found",
            request_id=request_id,
        )


class FeatureDisabledError(ProSyncError):
    """
    Raised when a feature flag turns an endpoint off.

    HTTP Status: 404 Not Found
    """

    def __init__(self, feature: str, *, request_id: str | None = None) -> None:
        self.feature = feature
        super().__init__(
            f"{feature} is disabled",
            error_code="feature_disabled",
            request_id=request_id,
        )


# =============================================================================
# External API Errors
# =============================================================================


class ExternalAPIError(ProSyncError):
    """
    Base class for external API errors.

    HTTP Status: 502 Bad Gateway
    """

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        detail_parts = []
        if service:
            detail_parts.append(f"Service: {service}")
        if status_code:
            detail_parts.append(f"Status: {status_code}")
        super().__init__(
            message,
            detail="; ".join(detail_parts) or None,
            error_code="external_api_error",
            request_id=request_id,
        )


class AnthropicAPIError(ExternalAPIError):
    """Raised when an Anthropic API call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.error_type = error_type
        super().__init__(
            message,
            service="anthropic",
            status_code=status_code,
            request_id=request_id,
        )
        if error_type:
            self.detail = f"Type: {error_type}" + (f"; Status: {status_code}" if status_code else "")


class APITimeoutError(ExternalAPIError):
    """Raised when an API request times out. HTTP Status: 504."""

    def __init__(
        self,
        service: str,
        *,
        timeout_seconds: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message=f"Request to {service} timed out",
            service=service,
            request_id=request_id,
        )
        self.error_code = "api_timeout"
        if timeout_seconds:
            self.detail = f"Timeout after {timeout_seconds}s"


class APIConnectionError(ExternalAPIError):
    """Raised when an API connection fails. HTTP Status: 503."""

    def __init__(
        self,
        service: str,
        *,
        reason: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(
            message=f"Connection to {service} failed",
            service=service,
            request_id=request_id,
        )
        self.error_code = "api_connection_error"
        self.detail = reason or "Could not establish connection"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ProSyncError):
    """
    Raised when configuration is invalid or missing.

    HTTP Status: 500 Internal Server Error
    """

    def __init__(
        self,
        message: str,
        *,
        setting_name: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.setting_name = setting_name
        detail = f"Missing or invalid setting: {setting_name}" if setting_name else None
        super().__init__(
            message,
            detail=detail,
            error_code="configuration_error",
            request_id=request_id,
        )


class MissingAPIKeyError(ConfigurationError):
    """Raised when no API key is stored for the user and none is configured. HTTP Status: 503."""

    def __init__(
        self,
        service: str,
        *,
        env_var: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.env_var = env_var
        super().__init__(
            message=f"Missing API key for {service}",
            setting_name=env_var or f"{service}_api_key",
            request_id=request_id,
        )
        self.error_code = "missing_api_key"
        self.detail = f"Save a {service} API key under /v1/ai/keys" + (
            f" or set the {env_var} environment variable" if env_var else ""
        )


# =============================================================================
# Data Store Errors
# =============================================================================


class DataStoreError(ProSyncError):
    """
    Raised when a record store operation is rejected.

    HTTP Status: 500 Internal Server Error
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        table: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.table = table
        detail_parts = []
        if operation:
            detail_parts.append(f"Operation: {operation}")
        if table:
            detail_parts.append(f"Table: {table}")
        super().__init__(
            message,
            detail="; ".join(detail_parts) or None,
            error_code="data_store_error",
            request_id=request_id,
        )


class DatabaseError(DataStoreError):
    """Raised when the database driver fails. HTTP Status: 503."""

    def __init__(
        self,
        message: str = "Database operation failed",
        *,
        operation: str | None = None,
        table: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation, table=table, request_id=request_id)
        self.error_code = "database_error"


# =============================================================================
# HTTP Exception Helpers
# =============================================================================

# Most specific classes first: the first isinstance match wins.
_STATUS_MAP: tuple[tuple[type[ProSyncError], int], ...] = (
    (ValidationError, 400),
    (AuthenticationRequiredError, 401),
    (RecordNotFoundError, 404),
    (FeatureDisabledError, 404),
    (APITimeoutError, 504),
    (APIConnectionError, 503),
    (ExternalAPIError, 502),
    (MissingAPIKeyError, 503),
    (ConfigurationError, 500),
    (DatabaseError, 503),
    (DataStoreError, 500),
)


def exception_to_http_status(exc: ProSyncError) -> int:
    """Map an exception to its HTTP status code."""
    for exc_class, status in _STATUS_MAP:
        if isinstance(exc, exc_class):
            return status
    return 500


def handle_exception(exc: Exception, request_id: str | None = None) -> dict[str, Any]:
    """
    Convert any exception to the standardized error response.

    Unknown exceptions are logged with their traceback and reported
    without leaking internals.
    """
    if isinstance(exc, ProSyncError):
        exc.request_id = request_id or exc.request_id
        return exc.to_dict()

    logger.error(
        "Unhandled exception",
        extra={
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "request_id": request_id,
        },
        exc_info=exc,
    )
    return ProSyncError(
        "An unexpected error occurred",
        error_code="internal_error",
        request_id=request_id,
    ).to_dict()
