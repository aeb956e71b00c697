"""
Error taxonomy and HTTP mapping for the Estate Manager API.

Every domain error carries the HTTP status it maps to. The handlers registered
by ``register_exception_handlers`` turn them, FastAPI request validation
failures and unexpected exceptions into the common response envelope::

    {"success": false, "message": "...", "error": "...", "errors": [...]}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException


@dataclass(slots=True)
class FieldError:
    """A single field-level validation failure."""

    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class EstateManagerError(Exception):
    """Base exception for the Estate Manager API."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EstateManagerError):
    """One or more fields violate their constraints."""

    status_code = 400

    def __init__(self, errors: Iterable[FieldError], message: str = "Validation error"):
        super().__init__(message)
        self.errors: List[FieldError] = list(errors)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([FieldError(field=field, message=message)])

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        return cls(_convert_pydantic_errors(exc.errors()))


class NotFound(EstateManagerError):
    """The requested property does not exist."""

    status_code = 404

    def __init__(self, message: str = "Property not found"):
        super().__init__(message)


class AlreadySold(EstateManagerError):
    """The property is already in the ``sold`` state."""

    status_code = 400

    def __init__(self, message: str = "Property is already marked as sold"):
        super().__init__(message)


class RemoteMediaError(EstateManagerError):
    """The media service rejected or failed a request."""

    status_code = 500

    def __init__(self, message: str, *, public_id: Optional[str] = None):
        super().__init__(message)
        self.public_id = public_id


class PersistenceError(EstateManagerError):
    """The listing store failed to persist a change."""

    status_code = 500


def _loc_to_field(loc: Iterable[Any]) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "form")]
    return ".".join(parts)


def _convert_pydantic_errors(raw_errors: Iterable[Dict[str, Any]]) -> List[FieldError]:
    errors = []
    for item in raw_errors:
        message = str(item.get("msg", "Invalid value"))
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append(FieldError(field=_loc_to_field(item.get("loc", ())), message=message))
    return errors


def error_body(
    message: str,
    *,
    error: Optional[str] = None,
    errors: Optional[List[FieldError]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    if errors:
        body["errors"] = [item.to_dict() for item in errors]
    return body


async def _handle_domain_error(request: Request, exc: EstateManagerError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        body = error_body(exc.message, errors=exc.errors)
    elif exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        body = error_body("Internal server error", error=exc.message)
    else:
        body = error_body(exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _convert_pydantic_errors(exc.errors())
    return JSONResponse(status_code=400, content=error_body("Validation error", errors=errors))


async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", error=str(exc)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to ``app``."""

    app.add_exception_handler(EstateManagerError, _handle_domain_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.add_exception_handler(Exception, _handle_unexpected)
