import logging
import uuid
from time import perf_counter

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from storybook.core.config import settings

logger = logging.getLogger("storybook.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (incoming header or generated) and logs one access line."""

    async def dispatch(self, request: Request, call_next):
        header = settings.request_id_header
        request_id = request.headers.get(header) or uuid.uuid4().hex
        start = perf_counter()
        response = await call_next(request)
        latency_ms = round((perf_counter() - start) * 1000, 1)
        response.headers[header] = request_id
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": latency_ms,
            },
        )
        return response
