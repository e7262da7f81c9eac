"""Authentication middleware for FastAPI."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from resourceforge.auth.jwt_service import JWTError, JWTService
from resourceforge.auth.types import ActorContext

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that turns a Bearer token into ``request.state.actor``.

    The middleware:
    1. Extracts Bearer token from Authorization header
    2. Decodes and validates the JWT
    3. Sets request.state.actor to an ActorContext built from the claims

    If no token is present or token is invalid, the actor is set to None.
    The middleware does NOT reject unauthenticated requests - that's handled
    by the permission guard in each handler.
    """

    def __init__(self, app, jwt_service: JWTService):
        """Initialize middleware with JWT service.

        Args:
            app: The ASGI application
            jwt_service: JWT service for token validation
        """
        super().__init__(app)
        self._jwt_service = jwt_service

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process the request and extract the actor."""
        request.state.actor = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[7:]  # Remove "Bearer " prefix
            try:
                claims = self._jwt_service.decode_token(token)
                request.state.actor = ActorContext.from_claims(claims)
            except JWTError as e:
                # Invalid token - leave the actor unset
                logger.info("Rejected bearer token: %s", e)

        return await call_next(request)


def get_actor(request: Request) -> ActorContext | None:
    """Get the actor from the request state.

    Args:
        request: The FastAPI/Starlette request

    Returns:
        ActorContext if authenticated, None otherwise
    """
    return getattr(request.state, "actor", None)
