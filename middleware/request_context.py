"""
Request context middleware for FastAPI

Assigns each request an id (honouring an incoming X-Request-ID header), makes
it available to every log line through the logging context variable, echoes it
back on the response and logs one line per request with status and latency.
"""

import logging
import time
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import reset_request_id, set_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware binding a request id to the logging context for the request's lifetime."""

    def __init__(self, app, config: Optional[Dict[str, Any]] = None):
        super().__init__(app)
        self.config = config or {}
        # Paths that are too chatty to log (health checks)
        self.quiet_paths = self.config.get('quiet_paths', ['/health'])

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        token = set_request_id(request_id)
        started_at = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - started_at) * 1000, 2)
            response.headers[REQUEST_ID_HEADER] = request_id
            if request.url.path not in self.quiet_paths:
                logger.info("request_completed", extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                })
            return response
        finally:
            reset_request_id(token)


def create_request_context_config() -> Dict[str, Any]:
    """Create default configuration for the request context middleware."""
    return {
        'quiet_paths': ['/health'],
    }
