import time

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request line and its outcome. Bodies are never logged."""

    async def dispatch(self, request, call_next):
        client = request.client.host if request.client else "-"
        started = time.perf_counter()
        logger.info(f"📥 {request.method} {request.url.path} - {client}")

        try:
            response = await call_next(request)
        except Exception:
            duration = (time.perf_counter() - started) * 1000
            logger.exception(
                f"📤 ❌ {request.method} {request.url.path} - 500 - {duration:.0f}ms"
            )
            raise

        duration = (time.perf_counter() - started) * 1000
        status_code = response.status_code
        if status_code >= 500:
            emoji = "❌"
        elif status_code >= 400:
            emoji = "⚠️"
        else:
            emoji = "✅"
        logger.info(
            f"📤 {emoji} {request.method} {request.url.path} - {status_code} - {duration:.0f}ms"
        )
        return response
