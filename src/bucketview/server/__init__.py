"""HTTP Server module."""

from bucketview.server.app import create_app
from bucketview.server.middleware import RequestContextMiddleware
from bucketview.server.routes import create_routes, handle_errors

__all__ = [
    "RequestContextMiddleware",
    "create_app",
    "create_routes",
    "handle_errors",
]
