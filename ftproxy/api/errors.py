"""
Error responses for the HTTP surface - every failure is reported as {message, details}
"""

from typing import Any, Awaitable
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from ..core.exceptions import ConfigError, UpstreamError


def error_details(error: Exception) -> Any:
    """Upstream body for upstream errors, enumerated keys for config errors, else the message"""
    if isinstance(error, UpstreamError):
        return error.body if error.body is not None else str(error)
    if isinstance(error, ConfigError):
        return {"message": str(error), "missing": error.missing}
    return str(error)


def error_response(message: str, error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": message, "details": error_details(error)},
    )


def bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies get the same {message, details} shape as every other failure"""
    logger.debug(f"Rejected request body: {request.method} {request.url.path} errors={exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


async def run_operation(failure_message: str, operation: Awaitable[Any]) -> Any:
    """Await a service call; any failure becomes a 500 {message, details} response"""
    try:
        return await operation
    except Exception as e:
        logger.error(f"{failure_message}: {e!r}")
        return error_response(failure_message, e)
