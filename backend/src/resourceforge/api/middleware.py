"""Request logging middleware."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

MAX_LOGGED_BODY = 2000


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs method, URL and body of every request, then proceeds."""

    async def dispatch(self, request: Request, call_next) -> Response:
        body = await request.body()
        text = body[:MAX_LOGGED_BODY].decode("utf-8", errors="replace")
        logger.info("%s %s %s", request.method, request.url, text)
        return await call_next(request)
