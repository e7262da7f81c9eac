"""JWT bearer token generation and validation."""

import time

import jwt

from resourceforge.auth.types import TokenClaims


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid or malformed."""

    pass


class JWTService:
    """Issues and decodes access tokens carrying an actor's roles and permissions.

    Uses HS256 algorithm with a shared secret key. Token issuance exists for
    development and tests; production tokens come from the identity provider
    that shares the key.
    """

    ACCESS_TOKEN_TTL = 15 * 60  # 15 minutes

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        """Initialize the JWT service.

        Args:
            secret_key: Secret key for signing tokens (should be at least 32 chars)
            algorithm: JWT algorithm (default HS256)
        """
        self._secret_key = secret_key
        self._algorithm = algorithm

    def generate_token(
        self,
        user_id: str,
        roles: list[str] | None = None,
        permissions: list[str] | None = None,
        ttl: int | None = None,
    ) -> str:
        """Generate an access token.

        Args:
            user_id: The user's ID (``sub`` claim)
            roles: Role names
            permissions: Permission strings
            ttl: Lifetime in seconds (default ACCESS_TOKEN_TTL)

        Returns:
            Encoded JWT
        """
        now = int(time.time())
        claims = {
            "sub": user_id,
            "iat": now,
            "exp": now + (self.ACCESS_TOKEN_TTL if ttl is None else ttl),
            "roles": roles or [],
            "permissions": permissions or [],
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenClaims:
        """Decode and validate a JWT token.

        Args:
            token: The JWT token string

        Returns:
            TokenClaims with the decoded claims

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        return TokenClaims(
            user_id=str(payload.get("sub", "")),
            roles=list(payload.get("roles") or []),
            permissions=list(payload.get("permissions") or []),
            exp=payload.get("exp", 0),
            iat=payload.get("iat", 0),
        )
