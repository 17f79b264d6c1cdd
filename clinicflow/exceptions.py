"""
Global exception handlers and custom exception classes.

Every failure the workflow core reports is an AppException subclass carrying
the HTTP status the adapter should use and, where known, the entity that
caused it.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Optional, Any
import logging

# Set up logging
logger = logging.getLogger(__name__)

class AppException(Exception):
    """
    Base exception class for application-specific exceptions.
    """
    error_code = "app_error"

    def __init__(
        self,
        status_code: int,
        detail: str,
        entity: Optional[str] = None,
        entity_id: Optional[Any] = None
    ):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.entity = entity
        self.entity_id = entity_id


class InvalidInputException(AppException):
    """Malformed or missing required field. Never retried."""
    error_code = "invalid_input"

    def __init__(self, detail: str = "Invalid input", entity: Optional[str] = None, entity_id: Optional[Any] = None):
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, detail, entity, entity_id)


class ResourceNotFoundException(AppException):
    """Referenced entity is absent or not in the state the operation needs."""
    error_code = "not_found"

    def __init__(self, detail: str = "Resource not found", entity: Optional[str] = None, entity_id: Optional[Any] = None):
        super().__init__(status.HTTP_404_NOT_FOUND, detail, entity, entity_id)


class ConflictException(AppException):
    """Concurrent update contention on a counter, quantity or flag."""
    error_code = "conflict"

    def __init__(self, detail: str = "Concurrent update conflict", entity: Optional[str] = None, entity_id: Optional[Any] = None):
        super().__init__(status.HTTP_409_CONFLICT, detail, entity, entity_id)


class InvalidTransitionException(AppException):
    """State machine edge not permitted from the current state."""
    error_code = "invalid_transition"

    def __init__(self, detail: str = "Invalid state transition", entity: Optional[str] = None, entity_id: Optional[Any] = None):
        super().__init__(status.HTTP_409_CONFLICT, detail, entity, entity_id)


class EmptyBillException(AppException):
    """Nothing pending and no extra charges supplied."""
    error_code = "empty_bill"

    def __init__(self, detail: str = "Nothing to bill", entity: Optional[str] = None, entity_id: Optional[Any] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, entity, entity_id)


class StoreUnavailableException(AppException):
    """Persistence or transport failure talking to the ledger store."""
    error_code = "store_unavailable"

    def __init__(self, detail: str = "Ledger store unavailable", entity: Optional[str] = None, entity_id: Optional[Any] = None):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, detail, entity, entity_id)


class UnauthenticatedException(AppException):
    """No identity was supplied by the upstream identity provider."""
    error_code = "unauthenticated"

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)


async def app_exception_handler(request: Request, exc: AppException):
    """
    Handler for application-specific exceptions.

    Args:
        request: The request that caused the exception
        exc: The exception instance

    Returns:
        JSONResponse: Standardized error response
    """
    if exc.status_code >= 500:
        logger.error(f"Application error on {request.url.path}: {exc.detail}")
    else:
        logger.info(f"Request rejected on {request.url.path}: {exc.error_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error": exc.error_code,
            "entity": exc.entity,
            "entity_id": exc.entity_id
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for request validation exceptions.

    Args:
        request: The request that caused the exception
        exc: The validation exception instance

    Returns:
        JSONResponse: Standardized error response with validation details
    """
    logger.info(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "error": InvalidInputException.error_code,
            "errors": jsonable_errors(exc)
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. raised ValueErrors) from validation errors."""
    return [
        {key: value for key, value in error.items() if key in ("loc", "msg", "type")}
        for error in exc.errors()
    ]


# Register exception handlers with FastAPI app
def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
