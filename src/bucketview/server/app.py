"""ASGI application for standalone deployment."""

import contextlib
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from bucketview.server.middleware import RequestContextMiddleware

if TYPE_CHECKING:
    from bucketview.browser import Browser


def create_app(browser: "Browser") -> Starlette:
    """Create the ASGI application.

    Args:
        browser: The configured Browser instance

    Returns:
        Starlette application
    """
    from bucketview.server.routes import create_routes

    routes = create_routes(browser)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        yield
        await browser.aclose()

    # Middleware stack (order matters - executed in reverse order)
    # So: CORS -> RequestContext -> Route handler
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=browser.config.server.cors_origins or ["*"],
            allow_methods=["GET", "HEAD", "POST", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID"],
        ),
        Middleware(RequestContextMiddleware),
    ]

    return Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
    )
