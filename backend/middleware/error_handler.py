"""
Global Error Handler Middleware
Catches exceptions that escaped the route handlers and sanitizes them
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from middleware.error_sanitizer import sanitize_exception_response
import uuid

class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware to catch and sanitize all unexpected errors"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())

        try:
            response = await call_next(request)
            response.headers["X-Request-Id"] = request_id
            return response
        except Exception as e:
            # Domain and validation errors are answered by the exception handlers;
            # anything reaching here is unexpected
            error_response = sanitize_exception_response(e, {"request_id": request_id})
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_response,
                headers={"X-Request-Id": request_id},
            )
