"""Uniform `{"error": {...}}` envelope used by every function endpoint."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .domain_errors import DomainError

logger = logging.getLogger(__name__)


def build_error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content={"error": error})


def build_domain_error_response(exc: DomainError) -> JSONResponse:
    """Render DomainError with its stable code and HTTP status."""
    return build_error_response(
        status_code=exc.http_status,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def _handle_domain_error(_: Request, exc: DomainError) -> JSONResponse:
    return build_domain_error_response(exc)


async def _handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return build_error_response(
        status_code=400,
        code="VALIDATION_ERROR",
        message=message,
        details={"errors": errors},
    )


async def _handle_store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store failure on %s", request.url.path)
    return build_error_response(
        status_code=500,
        code="STORE_ERROR",
        message=f"Persistent store operation failed: {exc.__class__.__name__}",
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return build_error_response(
        status_code=500,
        code="INTERNAL_ERROR",
        message=str(exc) or exc.__class__.__name__,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _handle_domain_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, _handle_store_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
