"""Middleware attaching permissive cross-origin headers to every response."""

from aiohttp import web
from aiohttp.typedefs import Handler

from .handlers import error_response
from .logging import get_logger

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Expose-Headers": "*",
    "Access-Control-Allow-Private-Network": "true",
}


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """
    Add the CORS header set to every response.

    aiohttp's own HTTP errors get the headers attached and are re-raised.
    Any other exception becomes a JSON 500 so callers never see a bare error.
    """
    logger.debug(f"{request.method} {request.raw_path} from {request.remote}")

    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise
    except Exception as exc:
        logger.exception(f"Unhandled error for {request.method} {request.raw_path}: {exc}")
        response = error_response(500, "Internal bridge error")

    response.headers.update(CORS_HEADERS)
    return response
