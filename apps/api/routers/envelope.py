"""Uniform response envelope and the exception handlers that produce error envelopes."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from services.errors import ApiError, Internal, InvalidArgument

logger = logging.getLogger(__name__)


def api_response(data: Any = None, message: str = "Success", status_code: int = 200) -> dict:
    """Wrap a payload as `{status, data, message, success}`."""
    return {
        "status": status_code,
        "data": jsonable_encoder(data),
        "message": message,
        "success": status_code < 400,
    }


def error_response(
    status_code: int,
    message: str,
    code: str,
    errors: Optional[list[Any]] = None,
) -> JSONResponse:
    content = {
        "status": status_code,
        "data": None,
        "message": message,
        "success": False,
        "error": code,
    }
    if errors:
        content["errors"] = jsonable_encoder(errors)
    return JSONResponse(status_code=status_code, content=content)


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message, exc.code, exc.errors)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return error_response(400, "Invalid request parameters", InvalidArgument.code, errors)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), "http_error")


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, Internal.default_message, Internal.code)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
