"""Error handler middleware for the assessment API.

This middleware catches domain exceptions that escape a route and turns
them into the standard error envelope. Routers use ``http_exception_for``
to apply the same status mapping to errors they catch themselves.
"""

import traceback
from typing import Callable, Union
from uuid import uuid4

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.utils.exceptions import (
    BusinessLogicError,
    ConfigurationError,
    ResourceNotFoundError,
    SkillSoftError,
    ValidationError,
    create_error_response,
    handle_exception_chain,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)


def status_code_for(error: Exception) -> int:
    """HTTP status for a domain error.

    Args:
        error: Error raised by a service

    Returns:
        int: 422, 404, 409 or 500
    """
    if isinstance(error, (ValidationError, ConfigurationError, ValueError)):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(error, ResourceNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, BusinessLogicError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def http_exception_for(error: Union[SkillSoftError, ValueError]) -> HTTPException:
    """Translate a service error into an ``HTTPException``.

    Internal failures are reported with a generic message.
    """
    status_code = status_code_for(error)
    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        return HTTPException(status_code=status_code, detail="An internal error occurred")
    message = error.message if isinstance(error, SkillSoftError) else str(error)
    return HTTPException(status_code=status_code, detail=message)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware to handle exceptions and format error responses."""

    def __init__(self, app: ASGIApp, debug: bool = False):
        """Initialize error handler middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error info
        """
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = getattr(request.state, "request_id", None) or str(uuid4())

        try:
            return await call_next(request)
        except SkillSoftError as e:
            return self._handle_application_error(e, request_id, request)
        except ValueError as e:
            return self._handle_application_error(e, request_id, request)
        except Exception as e:
            return self._handle_unexpected_error(e, request_id, request)

    def _handle_application_error(
        self,
        error: Union[SkillSoftError, ValueError],
        request_id: str,
        request: Request
    ) -> JSONResponse:
        """Handle domain exceptions.

        Args:
            error: The application exception
            request_id: Request ID for tracking
            request: The request object

        Returns:
            JSONResponse: Formatted error response
        """
        status_code = status_code_for(error)
        is_domain_error = isinstance(error, SkillSoftError)
        message = error.message if is_domain_error else str(error)
        code = error.error_code if is_domain_error else None

        logger.warning(
            f"Application error: {message}",
            extra={
                "request_id": request_id,
                "error_code": code,
                "error_type": error.__class__.__name__,
                "status_code": status_code,
                "path": request.url.path,
                "method": request.method,
            }
        )

        if is_domain_error:
            error_response = create_error_response(error, include_details=True)
        else:
            error_response = {"success": False, "error": {"type": error.__class__.__name__, "message": message}}
        error_response["error"]["code"] = str(code) if code is not None else error.__class__.__name__
        error_response["error"]["request_id"] = request_id

        return JSONResponse(status_code=status_code, content=error_response)

    def _handle_unexpected_error(
        self,
        error: Exception,
        request_id: str,
        request: Request
    ) -> JSONResponse:
        logger.error(
            f"Unexpected error: {str(error)}",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "error_type": type(error).__name__,
            },
            exc_info=True
        )

        error_response = {
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal error occurred",
                "request_id": request_id
            }
        }

        if self.debug:
            error_response["error"]["debug"] = {
                "type": type(error).__name__,
                "message": str(error),
                "chain": handle_exception_chain(error),
                "traceback": traceback.format_exc().split("\n"),
            }

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response
        )


__all__ = [
    "ErrorHandlerMiddleware",
    "http_exception_for",
    "status_code_for",
]
