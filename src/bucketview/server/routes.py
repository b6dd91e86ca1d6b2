"""HTTP route handlers for the JSON API.

Failures are reported as plain text with the status of the error class:
400 for malformed input, 502 for object store failures (the store's own
status is passed through on mutation endpoints), 500 for local failures.
"""

import functools
import json
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import pydantic
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from bucketview.exceptions import InternalError, UpstreamError, ValidationError
from bucketview.observability import get_logger
from bucketview.server.schemas import DeletePrefixRequest, RenameRequest
from bucketview.utils.validation import parse_limit

if TYPE_CHECKING:
    from bucketview.browser import Browser

logger = get_logger(__name__)

Handler = Callable[[Request], Awaitable[Response]]


def upstream_status(error: UpstreamError, passthrough: bool) -> int:
    """HTTP status reported to the client for an object store failure."""
    if passthrough and error.status_code is not None and error.status_code >= 400:
        return error.status_code
    return 502


def handle_errors(passthrough: bool = False) -> Callable[[Handler], Handler]:
    """Decorator mapping bucketview errors to plain-text responses.

    Args:
        passthrough: Report the object store's own error status instead of 502
    """

    def decorator(handler: Handler) -> Handler:
        @functools.wraps(handler)
        async def wrapper(request: Request) -> Response:
            try:
                return await handler(request)
            except ValidationError as e:
                return PlainTextResponse(str(e), status_code=400)
            except UpstreamError as e:
                logger.warning("Object store request failed", context={"path": request.url.path}, error=e)
                return PlainTextResponse(e.message, status_code=upstream_status(e, passthrough))
            except InternalError as e:
                logger.error("Request construction failed", context={"path": request.url.path}, error=e)
                return PlainTextResponse(str(e), status_code=500)

        return wrapper

    return decorator


async def read_json(request: Request) -> object:
    """Parse the request body as JSON.

    Raises:
        ValidationError: If the body is not valid JSON
    """
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("bad json") from e


def create_routes(browser: "Browser") -> list[Route]:
    """Create HTTP routes for the browser.

    Args:
        browser: The configured Browser instance

    Returns:
        List of Starlette routes
    """

    async def healthz(request: Request) -> Response:
        """Liveness probe."""
        return PlainTextResponse("ok\n")

    @handle_errors()
    async def list_objects(request: Request) -> Response:
        """One page of a directory level.

        Query: prefix, delimiter, max, exclude (repeated or comma-separated),
        continuationToken.
        """
        params = request.query_params
        page = await browser.list(
            prefix=params.get("prefix", ""),
            delimiter=params.get("delimiter") or "/",
            limit=parse_limit(params.get("max"), browser.config.listing.default_limit),
            exclude_prefixes=params.getlist("exclude"),
            cursor=params.get("continuationToken", ""),
        )
        return JSONResponse(page.to_dict())

    @handle_errors()
    async def stats(request: Request) -> Response:
        """Aggregate statistics for a prefix."""
        result = await browser.stats(request.query_params.get("prefix", ""))
        return JSONResponse(result.to_dict())

    @handle_errors(passthrough=True)
    async def rename(request: Request) -> Response:
        """Move one object or a whole prefix."""
        try:
            body = RenameRequest.model_validate(await read_json(request))
        except pydantic.ValidationError as e:
            raise ValidationError("bad json") from e

        result = await browser.rename(body.src, body.dst, body.is_prefix)
        return JSONResponse(result.to_dict("moved"))

    @handle_errors(passthrough=True)
    async def delete_prefix(request: Request) -> Response:
        """Delete every object under a prefix."""
        try:
            body = DeletePrefixRequest.model_validate(await read_json(request))
        except pydantic.ValidationError as e:
            raise ValidationError("bad json") from e

        result = await browser.delete_prefix(body.prefix)
        return JSONResponse(result.to_dict("deleted"))

    return [
        Route("/healthz", healthz, methods=["GET"]),
        Route("/api/list", list_objects, methods=["GET"]),
        Route("/api/stats", stats, methods=["GET"]),
        Route("/api/rename", rename, methods=["POST"]),
        Route("/api/delete-prefix", delete_prefix, methods=["POST"]),
    ]
