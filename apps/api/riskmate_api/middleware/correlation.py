"""Correlation ID middleware."""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation ID used in logs and error bodies."""

    async def dispatch(self, request: Request, call_next):
        """Process request with correlation ID."""
        correlation_id = (
            request.headers.get("x-correlation-id")
            or request.headers.get("x-request-id")
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["x-correlation-id"] = correlation_id
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms:.1f}ms",
            extra={"correlation_id": correlation_id},
        )
        return response
