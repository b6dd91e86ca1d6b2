"""Request context middleware for the HTTP server."""

import re
from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bucketview.observability import RequestContext, Timer, emit_timer, get_logger

logger = get_logger(__name__)

# Client supplied ids are echoed back only if they look harmless
REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the logging context and logs each request.

    The id is taken from the request header when present and valid,
    otherwise generated, and returned in the same response header.
    """

    def __init__(
        self,
        app: Any,
        header_name: str = "X-Request-ID",
        quiet_paths: list[str] | None = None,
    ) -> None:
        """Initialize request context middleware.

        Args:
            app: The ASGI application
            header_name: Header carrying the request id
            quiet_paths: Paths logged at DEBUG instead of INFO (e.g. /healthz)
        """
        super().__init__(app)
        self.header_name = header_name
        self.quiet_paths = set(quiet_paths or ["/healthz"])

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        """Run the request inside a fresh logging context."""
        incoming = request.headers.get(self.header_name)
        request_id = incoming if incoming and REQUEST_ID_RE.match(incoming) else None

        async with RequestContext(request_id=request_id) as context:
            request.state.request_id = context.request_id
            with Timer() as timer:
                response = await call_next(request)

            log_context = {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
            }
            if request.url.path in self.quiet_paths:
                logger.debug("Request completed", context=log_context, duration_ms=timer.duration_ms)
            else:
                logger.info("Request completed", context=log_context, duration_ms=timer.duration_ms)
            emit_timer(
                "http.request.duration",
                timer.duration_ms,
                {"path": request.url.path, "status": response.status_code},
            )

            response.headers[self.header_name] = context.request_id
            return response
