import time

from starlette.middleware.base import BaseHTTPMiddleware

from offerready.infrastructure.observability.logging import log_request


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with status and timing."""

    async def dispatch(self, request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(process_time, 2),
            request_id=getattr(request.state, "request_id", None),
        )
        return response
