"""Application error hierarchy and FastAPI exception handlers.

Every ``AppError`` carries a machine-readable ``code``, the HTTP status it maps
to, and a German ``user_message`` suitable for showing in the reservation form.
Storage failures are wrapped in ``StorageError`` with a descriptive prefix and
the original driver message; "not found" on single-row lookups is ``None``
rather than an exception.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = (
    "Es ist ein unerwarteter Fehler aufgetreten. Bitte versuchen Sie es später erneut."
)


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    code = "UNKNOWN_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    user_message = "Ein unerwarteter Fehler ist aufgetreten."

    def __init__(
        self,
        message: str,
        *,
        user_message: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message
        self.context = context or {}


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    user_message = "Die eingegebenen Daten sind ungültig. Bitte überprüfen Sie Ihre Eingaben."


class AuthenticationError(AppError):
    code = "AUTH_ERROR"
    status_code = status.HTTP_401_UNAUTHORIZED
    user_message = "Authentifizierung fehlgeschlagen. Bitte melden Sie sich erneut an."


class AuthorizationError(AppError):
    code = "AUTHORIZATION_ERROR"
    status_code = status.HTTP_403_FORBIDDEN
    user_message = "Sie haben keine Berechtigung für diese Aktion."


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    user_message = "Die angeforderte Ressource wurde nicht gefunden."


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT
    user_message = "Die Anfrage steht im Konflikt mit dem aktuellen Zustand."


class InsufficientCopiesError(ConflictError):
    """Raised when a magazine has fewer available copies than requested."""

    code = "INSUFFICIENT_COPIES"

    def __init__(self, magazine_id: Any, requested: int, available: int) -> None:
        self.magazine_id = magazine_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Magazine {magazine_id}: requested {requested}, available {available}",
            user_message=f"Nur noch {available} Exemplare verfügbar.",
        )


class ActiveReservationsError(ConflictError):
    code = "ACTIVE_RESERVATIONS"
    user_message = (
        "Löschung nicht möglich: Sie haben noch aktive Reservierungen. "
        "Bitte stornieren Sie diese zuerst oder warten Sie bis zur Abholung."
    )


class ServerError(AppError):
    code = "SERVER_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    user_message = "Ein Serverfehler ist aufgetreten. Bitte versuchen Sie es später erneut."


class StorageError(ServerError):
    """A data-access operation failed; the message keeps the driver's text."""

    code = "STORAGE_ERROR"


class ServiceUnavailableError(AppError):
    code = "SERVICE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    user_message = "Reservierungen sind derzeit nicht möglich. Bitte versuchen Sie es später erneut."


def _error_body(exc: AppError) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "error": exc.code,
        "message": exc.user_message,
    }
    if exc.context:
        body["details"] = exc.context
    return body


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        message = str(err.get("msg", ""))
        # Custom validators raise ValueError; pydantic prefixes their text
        message = message.removeprefix("Value error, ")
        errors.append({"field": ".".join(loc), "message": message})
    return errors


async def app_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Render an AppError with its German user message."""
    assert isinstance(exc, AppError)
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc)
    else:
        logger.info("%s: %s", exc.code, exc)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def request_validation_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Render body/query validation failures as a field list."""
    assert isinstance(exc, RequestValidationError)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "Validation failed",
            "message": "Eingabedaten sind ungültig.",
            "errors": _field_errors(exc),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the application's exception handlers."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        """Handle unhandled exceptions with a generic German message."""
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Internal server error",
                "message": GENERIC_ERROR_MESSAGE,
            },
        )
