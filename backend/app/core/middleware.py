from __future__ import annotations

import logging
import time
import uuid

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_logger = logging.getLogger("app.request")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Tags every response with a request id and logs requests slower than the threshold."""

    def __init__(self, app, *, slow_ms: float) -> None:
        super().__init__(app)
        self._slow_ms = max(0.0, slow_ms)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000.0
        response.headers.setdefault("X-Request-ID", request_id)
        if duration_ms >= self._slow_ms:
            request_logger.info(
                "request_slow id=%s method=%s path=%s status_code=%s duration_ms=%.2f",
                request_id,
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max(1, max_bytes)

    async def dispatch(self, request: Request, call_next) -> Response:
        raw_length = request.headers.get("content-length")
        if not raw_length or not raw_length.isdigit():
            return await call_next(request)
        if int(raw_length) > self._max_bytes:
            return JSONResponse(
                status_code=413,
                content={
                    "message": "Request body too large",
                    "details": {"content_length": int(raw_length), "max_bytes": self._max_bytes},
                },
            )
        return await call_next(request)
