import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.logger import logger

class LogMiddleware(BaseHTTPMiddleware):
    """Access log line per request; server errors are logged at error level."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Unhandled error | Method: {request.method} | Path: {path}")
            raise

        process_time = time.perf_counter() - start_time
        message = (
            f"Method: {request.method} | "
            f"Path: {path} | "
            f"Status: {response.status_code} | "
            f"Duration: {process_time:.4f}s"
        )
        if response.status_code >= 500:
            logger.error(message)
        else:
            logger.info(message)

        return response
