"""Tests for bearer extraction and the AuthGuard dependency (401/403, roles, revocation)."""

import unittest
from typing import Annotated
from unittest.mock import MagicMock

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from wms_tutorial.core.config import Settings
from wms_tutorial.core.database import ConnectionPool
from wms_tutorial.core.errors import register_exception_handlers
from wms_tutorial.core.tokens import TokenValidator
from wms_tutorial.middleware.auth import (
    FORBIDDEN_MESSAGE,
    MISSING_TOKEN_ERROR,
    MISSING_TOKEN_MESSAGE,
    AuthContext,
    AuthGuard,
    extract_bearer_token,
)
from wms_tutorial.middleware.cors import CORSMiddleware
from wms_tutorial.services.token_blacklist import revoke_token


def make_settings(**overrides) -> Settings:
    values = {
        "APP_ENV": "prod",
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": "guard-test-secret",
        "TOKEN_BLACKLIST_ENFORCED": False,
    }
    values.update(overrides)
    return Settings(**values)


def make_app(settings: Settings, handler: MagicMock, pool: ConnectionPool | None = None) -> FastAPI:
    app = FastAPI()
    app.state.settings = settings
    app.state.pool = pool
    app.state.token_validator = TokenValidator.from_settings(settings)
    register_exception_handlers(app)
    app.add_middleware(CORSMiddleware, local_origins=settings.CORS_LOCAL_ORIGINS)

    @app.get("/admin")
    def admin_only(auth: Annotated[AuthContext, Depends(AuthGuard(allowed_roles=["admin"]))]):
        handler(auth)
        return {"user": auth.username}

    @app.get("/me")
    def me(auth: Annotated[AuthContext, Depends(AuthGuard())]):
        handler(auth)
        return {"user": auth.username, "role": auth.role}

    @app.get("/public")
    def public(auth: Annotated[AuthContext, Depends(AuthGuard(require_auth=False))]):
        handler(auth)
        return {"user": auth.username, "authenticated": auth.is_authenticated}

    return app


class TestExtractBearerToken(unittest.TestCase):
    def test_variants(self) -> None:
        self.assertEqual(extract_bearer_token("Bearer abc"), "abc")
        self.assertEqual(extract_bearer_token("bearer abc"), "abc")
        self.assertEqual(extract_bearer_token("abc"), "abc")
        self.assertEqual(extract_bearer_token("Bearer Bearer abc"), "abc")
        self.assertEqual(extract_bearer_token("BEARER bearer 1:a:user"), "1:a:user")

    def test_missing(self) -> None:
        self.assertIsNone(extract_bearer_token(None))
        self.assertIsNone(extract_bearer_token(""))
        self.assertIsNone(extract_bearer_token("Bearer "))
        self.assertIsNone(extract_bearer_token("Bearer"))
        self.assertIsNone(extract_bearer_token("Bearer Bearer "))


class TestAuthGuard(unittest.TestCase):
    def setUp(self) -> None:
        self.handler = MagicMock()
        self.client = TestClient(make_app(make_settings(), self.handler))

    def test_missing_token_is_401(self) -> None:
        response = self.client.get("/me")
        self.assertEqual(response.status_code, 401)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], MISSING_TOKEN_ERROR)
        self.assertEqual(body["message"], MISSING_TOKEN_MESSAGE)
        self.handler.assert_not_called()

    def test_empty_bearer_header_is_missing_token(self) -> None:
        response = self.client.get("/me", headers={"Authorization": "Bearer "})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], MISSING_TOKEN_ERROR)
        self.handler.assert_not_called()

    def test_invalid_token_is_401(self) -> None:
        response = self.client.get("/me", headers={"Authorization": "Bearer nonsense"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Invalid token format")
        self.handler.assert_not_called()

    def test_doubled_bearer_prefix_is_accepted(self) -> None:
        response = self.client.get("/admin", headers={"Authorization": "Bearer Bearer 1:root:admin"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"user": "root"})
        self.assertEqual(self.handler.call_count, 1)

    def test_wrong_role_is_403_and_handler_not_invoked(self) -> None:
        response = self.client.get("/admin", headers={"Authorization": "Bearer 2:bob:user"})
        self.assertEqual(response.status_code, 403)
        body = response.json()
        self.assertEqual(body["error"], "Forbidden")
        self.assertEqual(body["message"], FORBIDDEN_MESSAGE)
        self.assertEqual(self.handler.call_count, 0)

    def test_context_carries_identity_and_headers(self) -> None:
        self.client.get("/me", headers={"Authorization": "3:carol:supervisor", "X-Trace": "t1"})
        context = self.handler.call_args.args[0]
        self.assertEqual(context.user_id, "3")
        self.assertEqual(context.role, "supervisor")
        self.assertEqual(context.token, "3:carol:supervisor")
        self.assertEqual(context.headers["x-trace"], "t1")

    def test_preflight_never_reaches_guard_or_handler(self) -> None:
        response = self.client.options("/admin")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.content, b"")
        self.handler.assert_not_called()

    def test_optional_auth_without_token(self) -> None:
        response = self.client.get("/public")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"user": None, "authenticated": False})

    def test_optional_auth_resolves_valid_token(self) -> None:
        response = self.client.get("/public", headers={"Authorization": "Bearer 4:dan:user"})
        self.assertEqual(response.json(), {"user": "dan", "authenticated": True})

    def test_optional_auth_ignores_bad_token(self) -> None:
        response = self.client.get("/public", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["authenticated"])


class TestRevokedTokens(unittest.TestCase):
    """The blacklist is only consulted when TOKEN_BLACKLIST_ENFORCED is on."""

    token = "5:erin:user"

    def _client(self, enforced: bool) -> tuple[TestClient, ConnectionPool]:
        pool = ConnectionPool("sqlite://", create_schema=True)
        db = pool.acquire().session()
        try:
            revoke_token(db, self.token, user_id="5")
        finally:
            db.close()
        settings = make_settings(TOKEN_BLACKLIST_ENFORCED=enforced)
        return TestClient(make_app(settings, MagicMock(), pool=pool)), pool

    def test_revoked_token_rejected_when_enforced(self) -> None:
        client, pool = self._client(enforced=True)
        self.addCleanup(pool.close)
        response = client.get("/me", headers={"Authorization": f"Bearer {self.token}"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Token revoked")

    def test_revoked_token_is_anonymous_on_optional_routes(self) -> None:
        client, pool = self._client(enforced=True)
        self.addCleanup(pool.close)
        response = client.get("/public", headers={"Authorization": f"Bearer {self.token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"user": None, "authenticated": False})

    def test_revoked_token_accepted_when_not_enforced(self) -> None:
        client, pool = self._client(enforced=False)
        self.addCleanup(pool.close)
        response = client.get("/me", headers={"Authorization": f"Bearer {self.token}"})
        self.assertEqual(response.status_code, 200)


if __name__ == "__main__":
    unittest.main()
