"""Domain error taxonomy and the FastAPI handlers that render it."""
from __future__ import annotations

import logging

from circuitbreaker import CircuitBreakerError
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class HotelError(Exception):
    """Base class for business-rule violations raised by the core."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(HotelError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(HotelError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(HotelError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(HotelError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(HotelError):
    status_code = status.HTTP_409_CONFLICT


class StateError(HotelError):
    status_code = status.HTTP_400_BAD_REQUEST


class StoreError(HotelError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def hotel_error_handler(_: Request, exc: HotelError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return error_response(status.HTTP_400_BAD_REQUEST, "; ".join(problems) or "Invalid request")


def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Log the driver error and answer with a ``StoreError`` that hides its details."""

    logger.exception("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return hotel_error_handler(request, StoreError("Database error"))


def store_unavailable_handler(_: Request, exc: CircuitBreakerError) -> JSONResponse:
    logger.warning("Refusing read while circuit is open: %s", exc)
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Service temporarily unavailable, try again shortly")


def add_error_handlers(app: FastAPI) -> None:
    """Render every failure with the ``{success: false, message}`` envelope."""

    app.add_exception_handler(HotelError, hotel_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
    app.add_exception_handler(CircuitBreakerError, store_unavailable_handler)
