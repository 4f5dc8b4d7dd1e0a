"""
Request logging middleware with request ID tracking.
"""
import logging
import time
import uuid
from contextvars import ContextVar

logger = logging.getLogger(__name__)

# Context variable for request ID propagation
request_id_ctx: ContextVar[str] = ContextVar('request_id', default='unknown')

# Default status code when response is not captured
DEFAULT_STATUS_CODE = 500


class RequestLoggingMiddleware:
    """
    Assigns a request ID to every HTTP request, exposes it through a context
    variable and the ``x-request-id`` response header, and logs timing.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        request_id_ctx.set(request_id)

        start_time = time.time()
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "/")
        status_code = DEFAULT_STATUS_CODE

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", DEFAULT_STATUS_CODE)
                headers = list(message.get("headers", []))
                headers.append([b"x-request-id", request_id.encode()])
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception(f"[{request_id}] {method} {path} failed")
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000
            logger.info(f"[{request_id}] {method} {path} -> {status_code} ({duration_ms:.1f} ms)")
