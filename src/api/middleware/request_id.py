"""Request ID middleware for the assessment API.

Every request carries an ID, taken from the ``X-Request-ID`` header when the
caller supplies a usable one. The ID is stored on ``request.state``, exposed
through a context variable for log correlation and echoed on the response.
"""

import contextvars
from typing import Callable, Optional
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.utils.logger import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MIN_REQUEST_ID_LENGTH = 8
MAX_REQUEST_ID_LENGTH = 128
FORBIDDEN_CHARACTERS = frozenset('<>"\'\n\r\0')

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id",
    default=None
)


def is_valid_request_id(request_id: Optional[str]) -> bool:
    if not request_id:
        return False
    if not MIN_REQUEST_ID_LENGTH <= len(request_id) <= MAX_REQUEST_ID_LENGTH:
        return False
    return not any(char in FORBIDDEN_CHARACTERS for char in request_id)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to generate and propagate request IDs."""

    def __init__(
        self,
        app: ASGIApp,
        header_name: str = REQUEST_ID_HEADER,
        generate_request_id: Optional[Callable[[], str]] = None
    ):
        """Initialize request ID middleware.

        Args:
            app: The ASGI application
            header_name: Header name for request ID
            generate_request_id: Custom function to generate request IDs
        """
        super().__init__(app)
        self.header_name = header_name
        self.generate_request_id = generate_request_id or (lambda: str(uuid4()))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name)
        if not is_valid_request_id(request_id):
            if request_id:
                logger.warning(f"Invalid request ID format: {request_id[:MAX_REQUEST_ID_LENGTH]!r}, generating new one")
            request_id = self.generate_request_id()

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            response = await call_next(request)
            response.headers[self.header_name] = request_id
            return response
        finally:
            request_id_var.reset(token)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_var.get()


__all__ = [
    "RequestIDMiddleware",
    "get_request_id",
    "is_valid_request_id",
]
