"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class ConfigurationError(ApplicationError):
    """Raised when a required configuration value is missing. Fatal at startup."""

    def __init__(self, message: str = "Configuration error") -> None:
        super().__init__(message, code="SYS_CONFIGURATION_ERROR")


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class ConflictError(ApplicationError):
    """Raised when there is a state conflict."""

    def __init__(self, message: str = "Resource conflict") -> None:
        super().__init__(message, code="RES_CONFLICT")


class ExternalServiceError(ApplicationError):
    """Raised when an external service call fails."""

    def __init__(self, message: str = "External service error", code: str = "SYS_EXTERNAL_SERVICE_ERROR") -> None:
        super().__init__(message, code=code)


class RpcTransportError(ExternalServiceError):
    """Raised when a downstream RPC times out or cannot be reached."""

    def __init__(self, message: str = "Downstream service unavailable") -> None:
        super().__init__(message, code="SYS_RPC_TRANSPORT_ERROR")


class MessageBusError(ExternalServiceError):
    """Raised when the message broker cannot accept a publish."""

    def __init__(self, message: str = "Message bus unavailable") -> None:
        super().__init__(message, code="SYS_MESSAGE_BUS_ERROR")


class PublishBackpressureError(MessageBusError):
    """Raised when too many publishes are awaiting broker acknowledgment."""

    def __init__(self, message: str = "Too many unacknowledged publishes") -> None:
        super().__init__(message)
        self.code = "SYS_PUBLISH_BACKPRESSURE"


class DatabaseError(ApplicationError):
    """Raised when a database operation fails."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message, code="SYS_DATABASE_ERROR")
