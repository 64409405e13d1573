"""
Custom exceptions for the release-mirror service.

This module defines domain-specific exceptions that separate upstream fetch
failures, cache failures, caller mistakes and webhook rejections so that each
can be contained or surfaced at the right layer.
"""


class ReleaseMirrorError(Exception):
    """
    Base exception for all release-mirror errors.

    All custom exceptions in release-mirror inherit from this class
    to allow for easy catching of all application-specific errors.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ReleaseMirrorError):
    """
    Exception raised when configuration is invalid or missing.

    Configuration problems are fatal at startup: the service cannot run
    without a readable config and a writable cache root.
    """

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when the configuration file cannot be read or parsed."""

    pass


class ConfigValidationError(ConfigurationError):
    """Exception raised when configuration validation fails."""

    pass


# =============================================================================
# Release Source Errors
# =============================================================================


class FetchError(ReleaseMirrorError):
    """
    Exception raised when the latest release descriptor cannot be fetched.

    This includes:
    - Network/transport failures
    - Non-200 responses from the release API
    - Malformed or incomplete response bodies

    Attributes:
        url: The URL that was requested.
        status_code: The HTTP status code, when a response was received.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code


# =============================================================================
# Cache Errors
# =============================================================================


class CacheError(ReleaseMirrorError):
    """Base exception for cache store failures."""

    pass


class DownloadFailedError(CacheError):
    """
    Exception raised when an asset could not be downloaded into the cache.

    Attributes:
        url: The source URL of the asset.
        path: The final cache path that was being populated.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.path = path


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(ReleaseMirrorError):
    """
    Exception raised when caller-supplied input is invalid.

    Validation errors are client errors; they are reported to the caller
    and never logged as system faults.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: str | None = None,
        details: str | None = None,
    ) -> None:
        """
        Initialize the validation exception.

        Args:
            message: The primary error message.
            field: The name of the field that failed validation.
            value: The value that failed validation.
            details: Optional additional context.
        """
        super().__init__(message, details)
        self.field = field
        self.value = value


class PathValidationError(ValidationError):
    """Exception raised when a cache path component fails security validation."""

    pass


class NotFoundError(ReleaseMirrorError):
    """Exception raised when a requested release or asset is not being tracked."""

    pass


# =============================================================================
# Webhook Errors
# =============================================================================


class AuthenticationError(ReleaseMirrorError):
    """Exception raised when a request fails authenticity checks."""

    pass


class WebhookError(ReleaseMirrorError):
    """
    Base exception for rejected webhook deliveries.

    Attributes:
        status_code: The HTTP status code the delivery should be answered with.
    """

    status_code = 400


class MethodNotAllowedError(WebhookError):
    """Exception raised when the webhook is called with a non-POST method."""

    status_code = 405


class UnauthorizedError(WebhookError, AuthenticationError):
    """Exception raised when the webhook signature is missing, malformed or wrong."""

    status_code = 401


class BadRequestError(WebhookError):
    """Exception raised when the webhook body cannot be read or parsed."""

    status_code = 400
