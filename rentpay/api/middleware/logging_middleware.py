"""
Request logging middleware.

Binds a correlation id to the request context so orchestrator and gateway
logs can be traced back to the HTTP call (or Daraja webhook) that caused them.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from rentpay.core.shared.logger import correlation_id_var

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of every request except health probes.
    """

    QUIET_PATHS: tuple[str, ...] = ("/health", "/favicon.ico")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex[:8]
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        try:
            if request.url.path.startswith(self.QUIET_PATHS):
                response = await call_next(request)
            else:
                response = await self._logged(request, call_next)
        finally:
            correlation_id_var.reset(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    async def _logged(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        route = f"{request.method} {request.url.path}"
        logger.info(f"--> {route} from {_client_ip(request)}")
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"<-- {route} raised after {(time.perf_counter() - started) * 1000:.1f}ms: {e}")
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, f"<-- {route} {response.status_code} in {duration_ms:.1f}ms")
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.1f}"
        return response


def _client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For behind a proxy (Daraja calls come through one)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
