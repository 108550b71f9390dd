"""Error taxonomy and the FastAPI handlers that render it.

Every error body is ``{"error": message}``; validation failures add a
``details`` list of ``{"field", "message"}`` entries.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FormBuilderError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FormBuilderError):
    status_code = 400

    def __init__(
        self, details: list[dict[str, str]], message: str = "Validation failed"
    ) -> None:
        super().__init__(message)
        self.details = details


class NotFoundError(FormBuilderError):
    status_code = 404


class BusinessRuleError(FormBuilderError):
    status_code = 400


class UploadError(FormBuilderError):
    status_code = 502


class ConfigurationError(FormBuilderError):
    status_code = 500


def error_body(message: str, details: list[dict[str, str]] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def _is_development(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_development)


async def handle_formbuilder_error(request: Request, exc: FormBuilderError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        return JSONResponse(error_body(exc.message, exc.details), status_code=400)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        if not _is_development(request):
            return JSONResponse(
                error_body("Something went wrong!"), status_code=exc.status_code
            )
    return JSONResponse(error_body(exc.message), status_code=exc.status_code)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)
    return JSONResponse(
        error_body(message), status_code=exc.status_code, headers=exc.headers
    )


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(error_body("Validation failed", details), status_code=400)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if _is_development(request) else "Something went wrong!"
    return JSONResponse(error_body(message), status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FormBuilderError, handle_formbuilder_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
