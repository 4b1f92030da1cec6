"""
Trade Dashboard - API Errors

Every failure leaves the API as JSON `{error, detail}`; no stack traces.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error with an HTTP status and a machine-readable code."""

    def __init__(self, status_code: int, error: str, detail: Optional[Any] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.detail = detail


def error_body(error: str, detail: Optional[Any] = None) -> dict:
    return {"error": error, "detail": detail}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_body(exc.error, exc.detail)),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder(error_body("invalid_request", exc.errors())),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=error_body("internal_error", str(exc)))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
