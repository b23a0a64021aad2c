"""
Endercom SDK - Custom exceptions for error handling.
"""

from typing import Any, Optional


class EndercomError(Exception):
    """Base exception for all Endercom SDK errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class ConfigurationError(EndercomError):
    """Raised when a function or agent is used before it is fully configured."""

    pass


class RegistrationError(EndercomError):
    """Raised when registering a function with the platform fails."""

    def __init__(
        self, message: str, cause: Optional[BaseException] = None, **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)
        self.cause = cause


class HandlerExecutionError(EndercomError):
    """Raised when a user handler fails while executing a request."""

    def __init__(
        self, message: str, cause: Optional[BaseException] = None, **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)
        self.cause = cause


class NotFoundError(EndercomError):
    """Raised when a requested resource is not found."""

    pass


class APIError(EndercomError):
    """Raised when an API request fails with an unexpected error."""

    pass


class AuthenticationError(EndercomError):
    """Raised when authentication fails or API key is invalid."""

    pass
