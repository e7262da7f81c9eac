"""Tests for bearer-token handling: JWTService and AuthMiddleware."""

import time

import jwt
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from resourceforge.auth import ActorContext, AuthMiddleware, JWTService, get_actor
from resourceforge.auth.jwt_service import InvalidTokenError, TokenExpiredError

SECRET = "test-secret-key-with-enough-length-123"


@pytest.fixture
def jwt_service():
    return JWTService(SECRET)


class TestJWTService:
    def test_round_trip_claims(self, jwt_service):
        token = jwt_service.generate_token(
            "user-1", roles=["manager"], permissions=["contact.*", "groups.@"]
        )
        claims = jwt_service.decode_token(token)

        assert claims.user_id == "user-1"
        assert claims.roles == ["manager"]
        assert claims.permissions == ["contact.*", "groups.@"]
        assert claims.exp - claims.iat == JWTService.ACCESS_TOKEN_TTL

    def test_actor_from_claims(self, jwt_service):
        claims = jwt_service.decode_token(
            jwt_service.generate_token("user-1", permissions=["contact.index"])
        )
        actor = ActorContext.from_claims(claims)
        assert actor.user_id == "user-1"
        assert actor.can("contact.index")
        assert not actor.is_system

    def test_expired(self, jwt_service):
        token = jwt_service.generate_token("user-1", ttl=-10)
        with pytest.raises(TokenExpiredError):
            jwt_service.decode_token(token)

    def test_wrong_key(self, jwt_service):
        token = JWTService("another-secret-key-of-decent-length").generate_token("user-1")
        with pytest.raises(InvalidTokenError):
            jwt_service.decode_token(token)

    def test_garbage(self, jwt_service):
        with pytest.raises(InvalidTokenError):
            jwt_service.decode_token("not.a.token")

    def test_missing_optional_claims(self, jwt_service):
        now = int(time.time())
        token = jwt.encode({"sub": "u9", "exp": now + 60}, SECRET, algorithm="HS256")
        claims = jwt_service.decode_token(token)
        assert claims.roles == []
        assert claims.permissions == []


class TestAuthMiddleware:
    @pytest.fixture
    def client(self, jwt_service):
        app = FastAPI()
        app.add_middleware(AuthMiddleware, jwt_service=jwt_service)

        @app.get("/whoami")
        async def whoami(request: Request):
            actor = get_actor(request)
            if actor is None:
                return {"actor": None}
            return {"actor": actor.user_id, "permissions": sorted(actor.permissions)}

        return TestClient(app)

    def test_valid_token_sets_actor(self, client, jwt_service):
        token = jwt_service.generate_token("user-1", permissions=["contact.index"])
        response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})
        assert response.json() == {"actor": "user-1", "permissions": ["contact.index"]}

    def test_no_header(self, client):
        assert client.get("/whoami").json() == {"actor": None}

    def test_invalid_token_leaves_actor_unset(self, client):
        response = client.get("/whoami", headers={"Authorization": "Bearer junk"})
        assert response.status_code == 200
        assert response.json() == {"actor": None}

    def test_non_bearer_scheme_ignored(self, client):
        response = client.get("/whoami", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert response.json() == {"actor": None}
