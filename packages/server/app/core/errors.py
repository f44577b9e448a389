"""
Error taxonomy and the JSON error envelope.

Services raise these (they are HTTPExceptions, so FastAPI dependencies can
raise them too); the handlers registered in ``app.main`` render every failure
as ``{"success": false, "error": "...", "details": {...}}``.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

log = structlog.get_logger()


class ServiceError(HTTPException):
    """Base class for domain failures carrying an optional details payload."""

    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(
        self,
        detail: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)
        self.details = details


class Unauthenticated(ServiceError):
    status_code = 401
    default_detail = "Unauthorized"


class Forbidden(ServiceError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    default_detail = "Not found"


class ValidationFailed(ServiceError):
    status_code = 400
    default_detail = "Invalid request"


class Conflict(ServiceError):
    """A domain invariant would be violated; ``details`` tells the caller what to fix."""

    status_code = 400
    default_detail = "Conflict"


def error_body(message: str, details: Optional[dict[str, Any]] = None) -> dict:
    body: dict[str, Any] = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return body


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    details = getattr(exc, "details", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_body(str(exc.detail), details)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder(
            error_body("Invalid request", {"errors": exc.errors()})
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception(
        "request.unhandled_error",
        method=request.method,
        path=request.url.path,
        error=type(exc).__name__,
    )
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
