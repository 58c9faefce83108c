"""Access logging middleware for the assessment API."""

import time
from typing import Callable, Dict, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.utils.logger import get_api_logger

logger = get_api_logger()

MASKED = "***MASKED***"
DEFAULT_EXCLUDE_PATHS = ["/health", "/metrics", "/docs", "/redoc", "/openapi.json"]
DEFAULT_MASK_FIELDS = ["authorization", "cookie", "token", "secret", "api-key"]


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request and its response status and duration.

    Health probes and documentation routes are skipped. Header values whose
    name contains one of ``mask_fields`` are masked.
    """

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[List[str]] = None,
        mask_fields: Optional[List[str]] = None
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or DEFAULT_EXCLUDE_PATHS
        self.mask_fields = mask_fields or DEFAULT_MASK_FIELDS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        request_id = getattr(request.state, "request_id", None)
        start_time = time.perf_counter()

        logger.info(
            f"Request: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "client_host": request.client.host if request.client else None,
                "headers": self.mask_headers(dict(request.headers)),
            }
        )

        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        extra = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if response.status_code >= 500:
            logger.error(f"Error Response: {request.method} {request.url.path} - {response.status_code}", extra=extra)
        elif response.status_code >= 400:
            logger.warning(f"Client Error: {request.method} {request.url.path} - {response.status_code}", extra=extra)
        else:
            logger.info(f"Response: {request.method} {request.url.path} - {response.status_code}", extra=extra)

        return response

    def mask_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        return {
            key: MASKED if any(field in key.lower() for field in self.mask_fields) else value
            for key, value in headers.items()
        }


__all__ = ["LoggingMiddleware"]
