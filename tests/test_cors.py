"""Tests for the CORS interceptor: origin echo, preflight and the last-resort error envelope."""

import unittest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from wms_tutorial.core.errors import NotFoundError, register_exception_handlers
from wms_tutorial.middleware.cors import ALLOW_HEADERS, ALLOW_METHODS, CORSMiddleware

LOCAL_ORIGINS = ["http://localhost:3000", "http://localhost:3006"]


def make_client(is_development: bool) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(CORSMiddleware, local_origins=LOCAL_ORIGINS, is_development=is_development)

    @app.get("/ok")
    def ok():
        return {"success": True}

    @app.get("/missing")
    def missing():
        raise NotFoundError("No such thing")

    @app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    return TestClient(app)


class TestCorsHeaders(unittest.TestCase):
    def setUp(self) -> None:
        self.client = make_client(is_development=False)

    def test_local_origin_is_echoed(self) -> None:
        response = self.client.get("/ok", headers={"Origin": "http://localhost:3006"})
        self.assertEqual(response.headers["access-control-allow-origin"], "http://localhost:3006")
        self.assertEqual(response.headers["access-control-allow-headers"], ALLOW_HEADERS)
        self.assertEqual(response.headers["access-control-allow-methods"], ALLOW_METHODS)

    def test_other_origins_get_wildcard(self) -> None:
        response = self.client.get("/ok", headers={"Origin": "https://example.com"})
        self.assertEqual(response.headers["access-control-allow-origin"], "*")

    def test_no_origin_gets_wildcard(self) -> None:
        response = self.client.get("/ok")
        self.assertEqual(response.headers["access-control-allow-origin"], "*")

    def test_preflight_is_204_without_body(self) -> None:
        response = self.client.options("/ok", headers={"Origin": "http://localhost:3000"})
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.content, b"")
        self.assertEqual(response.headers["access-control-allow-origin"], "http://localhost:3000")

    def test_preflight_for_unknown_route(self) -> None:
        response = self.client.options("/does-not-exist")
        self.assertEqual(response.status_code, 204)

    def test_app_errors_keep_cors_headers(self) -> None:
        response = self.client.get("/missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json(),
            {"success": False, "error": "Not found", "message": "No such thing"},
        )
        self.assertEqual(response.headers["access-control-allow-origin"], "*")


class TestUnhandledErrors(unittest.TestCase):
    def test_production_message_is_scrubbed(self) -> None:
        response = make_client(is_development=False).get("/boom")
        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["error"], "Internal server error")
        self.assertEqual(body["message"], "An unexpected error occurred")
        self.assertNotIn("diagnostics", body)
        self.assertEqual(response.headers["access-control-allow-origin"], "*")

    def test_development_includes_diagnostics(self) -> None:
        response = make_client(is_development=True).get("/boom")
        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["message"], "secret internals")
        self.assertEqual(body["diagnostics"]["name"], "RuntimeError")
        self.assertIn("secret internals", body["diagnostics"]["stack"])


if __name__ == "__main__":
    unittest.main()
