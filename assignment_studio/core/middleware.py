"""
Custom middleware for the FastAPI application
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("assignment_studio.requests")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses"""
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        logger.info("REQUEST: %s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("ERROR in request %s %s: %s: %s", request.method, request.url.path, type(e).__name__, e)
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("RESPONSE: %s %s -> %s (%.0f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response
