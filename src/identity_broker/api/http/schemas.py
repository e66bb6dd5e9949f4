"""Request and response bodies for the HTTP API."""

from datetime import UTC, datetime
from typing import Annotated, Any, Generic, TypeVar

from fastapi import Request
from pydantic import BaseModel, Field, StringConstraints

from src.identity_broker.core.errors import FieldError

T = TypeVar("T")

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for every successful response."""

    success: bool = True
    message: str | None = None
    data: T | None = None
    trace_id: str | None = None


def success(request: Request, data: Any = None, message: str | None = None) -> ApiResponse:
    """Wrap ``data`` in the success envelope, tagged with the request trace id."""
    return ApiResponse(
        message=message, data=data, trace_id=getattr(request.state, "trace_id", None)
    )


class ErrorResponse(BaseModel):
    """Envelope for every error response."""

    success: bool = False
    error: str
    message: str
    trace_id: str | None = None
    path: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    validation_errors: list[FieldError] | None = None


class RegisterRequest(BaseModel):
    username: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=3, max_length=50)
    ]
    email: Annotated[str, StringConstraints(strip_whitespace=True, pattern=EMAIL_PATTERN)]
    password: Annotated[str, StringConstraints(min_length=6)]
    full_name: NonBlank


class LoginRequest(BaseModel):
    username: NonBlank
    password: NonBlank


class RefreshRequest(BaseModel):
    refresh_token: NonBlank


class LogoutRequest(BaseModel):
    refresh_token: NonBlank


class GoogleCallbackRequest(BaseModel):
    code: NonBlank
    redirect_uri: NonBlank


class AuthUrlResponse(BaseModel):
    url: str


class UserInfoResponse(BaseModel):
    id: str = Field(description="Provider subject id")
    username: str
    email: str | None = None
    full_name: str
    roles: list[str] = Field(default_factory=list)
    local_user_id: int | None = Field(default=None, description="Local users.id")


class ItemRequest(BaseModel):
    # Blank names are rejected by the item service, not here
    name: str | None = None
    description: str | None = None
