"""
Translation of domain exceptions into HTTP responses.

Services raise domain errors only; this module decides the status code and
the JSON body ``{"detail": ...}`` the client sees.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from undangan.exceptions.domain import (
    AuthenticationError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    StorageError,
    UndanganError,
    ValidationError,
)
from undangan.utils.logger import logger

# Exception class -> (status code, detail used when the error carries no message)
ERROR_RESPONSES: dict[type[UndanganError], tuple[int, str]] = {
    AuthenticationError: (status.HTTP_401_UNAUTHORIZED, "Authentication failed"),
    EntityNotFoundError: (status.HTTP_404_NOT_FOUND, "Resource not found"),
    EntityAlreadyExistsError: (status.HTTP_409_CONFLICT, "Resource already exists"),
    ValidationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed"),
}


async def handle_domain_error(_: Request, exc: Exception) -> JSONResponse:
    """Render a domain error with the status registered for its class."""
    status_code, fallback = next(
        response for cls, response in ERROR_RESPONSES.items() if isinstance(exc, cls)
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc) or fallback},
        headers=headers,
    )


async def handle_storage_error(_: Request, exc: Exception) -> JSONResponse:
    """Log the database failure; the client only learns that it happened."""
    logger.error(f"Storage failure: {exc!r} (cause: {exc.__cause__!r})")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database operation failed"},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain error handlers on ``app``."""
    for exc_class in ERROR_RESPONSES:
        app.add_exception_handler(exc_class, handle_domain_error)
    app.add_exception_handler(StorageError, handle_storage_error)
