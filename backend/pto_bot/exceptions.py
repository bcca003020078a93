from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ParseError(AppError):
    """The date extractor produced unusable or missing date/reason data."""

    def __init__(self, message: str = "Could not understand the requested dates") -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class ValidationError(AppError):
    """Requested dates are logically invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class SpanTooLongError(ParseError, ValidationError):
    """Requested range is longer than the configured maximum span."""

    def __init__(self, span_days: int, max_span_days: int) -> None:
        self.span_days = span_days
        self.max_span_days = max_span_days
        AppError.__init__(
            self,
            f"Date range of {span_days} days exceeds the maximum of {max_span_days}; please provide a shorter range",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


class InsufficientBalanceError(AppError):
    """Requested business days exceed the remaining balance."""

    def __init__(self, requested: int, remaining: int) -> None:
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Requested {requested} days but only {remaining} remaining",
            status_code=status.HTTP_409_CONFLICT,
        )


class NotFoundError(AppError):
    """A decision referenced an unknown request id."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__("Request not found", status_code=status.HTTP_404_NOT_FOUND)


class UnauthorizedError(AppError):
    """The acting user is not the request's assigned manager."""

    def __init__(self, request_id: str, actor_id: str) -> None:
        self.request_id = request_id
        self.actor_id = actor_id
        super().__init__("Not authorized to decide this request", status_code=status.HTTP_403_FORBIDDEN)


class ConflictError(AppError):
    """The request was already decided with the opposite outcome."""

    def __init__(self, request_id: str, current_status: str) -> None:
        self.request_id = request_id
        self.current_status = current_status
        super().__init__(f"Request already {current_status}", status_code=status.HTTP_409_CONFLICT)


class UserNotFoundError(AppError):
    """No balance row exists for the user."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"No balance row for user {user_id}", status_code=status.HTTP_404_NOT_FOUND)


class UpstreamError(AppError):
    """A transport or storage collaborator failed; the operation may be retried."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class SignatureError(AppError):
    """Inbound Slack request failed signature verification."""

    def __init__(self) -> None:
        super().__init__("Invalid Slack signature", status_code=status.HTTP_401_UNAUTHORIZED)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
