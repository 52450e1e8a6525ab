"""
Request logging middleware.

Logs every inbound webhook (method, path, query, headers, raw body) before
the route sees it. The body is read through Starlette's cached request so the
route can still parse the form.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Stateless: nothing is kept between requests."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        body = await request.body()
        text = body.decode("utf-8", errors="replace")
        query = f"?{request.url.query}" if request.url.query else ""

        logger.info("----- Incoming Request -----")
        logger.info(f"{request.method} {request.url.path}{query}")
        for name, value in request.headers.items():
            logger.info(f"Header: {name} = {value}")
        logger.info(f"Raw Body: {text or '<empty>'}")
        logger.info("----------------------------")

        return await call_next(request)
