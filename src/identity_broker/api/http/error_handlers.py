"""Translate exceptions into the API error envelope."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from src.identity_broker.api.http.schemas import ErrorResponse
from src.identity_broker.core.errors import (
    BrokerError,
    FieldError,
    UnexpectedError,
    ValidationFailedError,
)

_HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    validation_errors: list[FieldError] | None = None,
) -> JSONResponse:
    trace_id = getattr(request.state, "trace_id", None)
    body = ErrorResponse(
        error=code,
        message=message,
        trace_id=trace_id,
        path=request.url.path,
        validation_errors=validation_errors or None,
    )
    headers = {get_trace_header(request): trace_id} if trace_id else None
    return JSONResponse(
        status_code=status_code, content=body.model_dump(mode="json"), headers=headers
    )


def get_trace_header(request: Request) -> str:
    return getattr(request.state, "trace_header", "X-Trace-Id")


def render_broker_error(request: Request, exc: BrokerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("{} on {}: {}", exc.code, request.url.path, exc.message)
    else:
        logger.warning("{} on {}: {}", exc.code, request.url.path, exc.message)

    field_errors = exc.field_errors if isinstance(exc, ValidationFailedError) else None
    return error_response(request, exc.status_code, exc.code, exc.message, field_errors)


def render_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error on {}", request.url.path)
    error = UnexpectedError()
    return error_response(request, error.status_code, error.code, error.message)


async def _broker_error_handler(request: Request, exc: BrokerError) -> JSONResponse:
    return render_broker_error(request, exc)


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    field_errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"] if part != "body")
        rejected = err.get("input")
        # Missing fields report the whole body as input; never echo secrets
        if "password" in field or isinstance(rejected, dict):
            rejected = None
        field_errors.append(FieldError(field=field, message=err["msg"], rejected_value=rejected))
    logger.warning("Invalid input on {}: {} field(s)", request.url.path, len(field_errors))
    return error_response(
        request, 400, "VALIDATION_ERROR", "Invalid input data", field_errors
    )


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(request, exc.status_code, code, str(exc.detail))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BrokerError, _broker_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
