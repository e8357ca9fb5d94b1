"""
Custom exceptions for releasemirror.

Errors fall into three tiers that decide how far a failure propagates:

- Fatal (ConfigurationError, StorageError) aborts the whole run.
- Repository-fatal (ReleaseListingError) aborts only one repository's pass.
- Item-recoverable (DownloadError, PathValidationError) is logged and the
  reconciler moves on to the next asset or release.
"""


class ReleaseMirrorError(Exception):
    """
    Base exception for all releasemirror errors.

    All custom exceptions should inherit from this class to allow for easy
    catching of all application-specific errors.
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

    This includes:
    - Missing required configuration keys
    - Invalid configuration values
    - Configuration file parsing errors
    """

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when the configuration file cannot be read or parsed."""

    pass


class ConfigValidationError(ConfigurationError):
    """Exception raised when configuration validation fails."""

    pass


# =============================================================================
# API Errors
# =============================================================================


class APIError(ReleaseMirrorError):
    """
    Exception raised for API-related errors.

    Attributes:
        endpoint: The API endpoint that was accessed.
        status_code: The HTTP status code returned, when there was one.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class ReleaseListingError(APIError):
    """Exception raised when a paginated release or tag listing cannot be fetched or decoded."""

    pass


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(ReleaseMirrorError):
    """
    Base exception for asset download errors.

    Attributes:
        url: The URL that was being downloaded when the error occurred.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url


class NetworkError(DownloadError):
    """
    Exception raised for network-related download failures.

    This includes:
    - Connection timeouts
    - DNS resolution failures
    - Connection refused errors
    - SSL/TLS errors
    """

    pass


class HTTPError(DownloadError):
    """
    Exception raised when the server answers a download with an error status.

    Attributes:
        status_code: The HTTP status code returned by the server.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, url, details)
        self.status_code = status_code


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(ReleaseMirrorError):
    """
    Exception raised for file system-related errors.

    Attributes:
        path: The file path that caused the error.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


class StorageError(FileSystemError):
    """Exception raised when the mirror root cannot be created, scanned, or written."""

    pass


class PathValidationError(FileSystemError):
    """Exception raised when a tag or asset name cannot be mapped to a safe path."""

    pass
