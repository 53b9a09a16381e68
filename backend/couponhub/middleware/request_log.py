import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from couponhub.core.logging_config import request_id_ctx_var

logger = logging.getLogger("couponhub.request")

REQUEST_ID_HEADER = "X-Request-ID"
_COUPON_PREFIX = "/api/v1/coupons/"


def _operation_for(path: str) -> str | None:
    if not path.startswith(_COUPON_PREFIX):
        return None
    return path[len(_COUPON_PREFIX):].strip("/") or None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id (reusing the caller's) and log one line when it finishes."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_ctx_var.set(request_id)
        request.state.request_id = request_id
        started = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            if response is not None:
                response.headers[REQUEST_ID_HEADER] = request_id
                extra = {
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": int((time.perf_counter() - started) * 1000),
                }
                operation = _operation_for(request.url.path)
                if operation:
                    extra["operation"] = operation
                level = logging.WARNING if response.status_code >= 500 else logging.INFO
                logger.log(level, "request", extra=extra)
            request_id_ctx_var.reset(token)
