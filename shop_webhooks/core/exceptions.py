"""Custom exceptions for the webhook delivery subsystem."""


class ShopWebhooksException(Exception):
    """Base exception for all webhook subsystem errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize exception with message and optional details.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationException(ShopWebhooksException):
    """Configuration error."""

    pass


class StorageException(ShopWebhooksException):
    """Exceptions related to storage operations."""

    pass


class DatabaseException(StorageException):
    """Database operation failed."""

    pass


class APIException(ShopWebhooksException):
    """Exceptions surfaced to API callers with an HTTP status."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict | None = None,
    ) -> None:
        """Initialize API exception.

        Args:
            message: Error message
            status_code: HTTP status code
            details: Additional error details
        """
        super().__init__(message, details)
        self.status_code = status_code


class ValidationException(APIException):
    """Endpoint configuration or input failed validation."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, details=details)


class InvalidUrlException(ValidationException):
    """Webhook URL is not an absolute http(s) URL."""

    def __init__(self, message: str = "Invalid webhook URL", details: dict | None = None) -> None:
        """Initialize with 400 status code."""
        super().__init__(message, details=details)


class NotFoundException(APIException):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found", details: dict | None = None) -> None:
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, details=details)
