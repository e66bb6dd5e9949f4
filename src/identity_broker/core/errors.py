"""Error taxonomy shared by the broker, the directory client and the HTTP layer.

Every error carries a stable ``code`` (rendered as ``error`` in API responses)
and the HTTP status the API maps it to. Network failures are translated into
these classes at the boundary that observed them, so callers never see raw
``httpx`` exceptions.
"""

from typing import Any

from pydantic import BaseModel


class FieldError(BaseModel):
    """A single rejected input field."""

    field: str
    message: str
    rejected_value: Any = None


class BrokerError(Exception):
    """Base class for errors the API knows how to render."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class AuthFailedError(BrokerError):
    code = "AUTH_FAILED"
    status_code = 401
    default_message = "Authentication failed"


class InvalidTokenError(BrokerError):
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Invalid or expired token"


class ServiceAuthFailedError(BrokerError):
    code = "SERVICE_AUTH_FAILED"
    status_code = 503
    default_message = "Service could not authenticate with the identity provider"


class ServiceUnavailableError(BrokerError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503
    default_message = "Identity provider is unavailable"


class UserAlreadyExistsError(BrokerError):
    code = "USER_EXISTS"
    status_code = 409
    default_message = "Username or email already exists"


class RegistrationFailedError(BrokerError):
    code = "REGISTRATION_FAILED"
    status_code = 400
    default_message = "Registration failed"


class UserNotFoundError(BrokerError):
    code = "USER_NOT_FOUND"
    status_code = 404
    default_message = "User not found"


class NotFoundError(BrokerError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class ValidationFailedError(BrokerError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        field_errors: list[FieldError] | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.field_errors = list(field_errors or [])

    @classmethod
    def for_field(
        cls, field: str, message: str, rejected_value: Any = None
    ) -> "ValidationFailedError":
        return cls(
            field_errors=[
                FieldError(field=field, message=message, rejected_value=rejected_value)
            ]
        )


class UnexpectedError(BrokerError):
    code = "INTERNAL_ERROR"
    status_code = 500
