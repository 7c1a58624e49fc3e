import os
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from middleware.logging_config import get_logger, log_api_request, log_api_response

logger = get_logger("api.middleware")

# Requests slower than this are logged as warnings
SLOW_REQUEST_MS = float(os.getenv("SLOW_REQUEST_MS", "1000"))

QUIET_PATHS = ("/health",)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and its response time; adds X-Process-Time"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        log_api_request(
            logger,
            method,
            path,
            user_id=request.headers.get("x-user-id"),
            client_ip=client_ip,
            query_params=dict(request.query_params),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.error(f"API Error: {method} {path} | Time: {elapsed:.2f}ms | Error: {str(e)}", exc_info=True)
            raise

        elapsed = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time"] = f"{elapsed:.2f}ms"
        log_api_response(logger, method, path, response.status_code, response_time=elapsed)
        if elapsed > SLOW_REQUEST_MS:
            logger.warning(f"Slow request: {method} {path} took {elapsed:.0f}ms")

        return response
