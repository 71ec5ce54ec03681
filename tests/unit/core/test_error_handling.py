"""
Tests for error handling middleware.
Covers BCQ error rendering, sanitization and the generic fallbacks.
"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, OperationalError

from core.exceptions import (
    GatewayRateLimitError,
    InvalidAccessError,
    PayloadTooLargeError,
    UploadError,
)
from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    get_safe_error_details,
    sanitize_error_message,
    setup_error_handlers,
)


class TestSensitiveDataSanitization:
    """Sensitive values never survive sanitization."""

    @pytest.mark.parametrize("sensitive_input,expected_redacted", [
        ('password="secret123"', True),
        ('token=valid-token-abc123', True),
        ('bcq_access_token: "abc123xyz"', True),
        ('api_key="sk_live_12345"', True),
        ('client_secret:abc123', True),
        ('authorization: Bearer token123', True),
        ('https://bucket.s3.amazonaws.com/a/b.webm?X-Amz-Signature=deadbeef', True),
        ('username="jordan"', False),
        ('message="Operation successful"', False),
        ('count=12345', False),
    ])
    def test_sanitize_sensitive_patterns(self, sensitive_input, expected_redacted):
        sanitized = sanitize_error_message(sensitive_input)
        if expected_redacted:
            assert "[REDACTED]" in sanitized
        else:
            assert sanitized == sensitive_input

    def test_portal_query_token_is_removed(self):
        message = "GET /business-case/job-1?applicationId=app-1&token=s3cr3t-t0ken&x=1"
        sanitized = sanitize_error_message(message)

        assert "s3cr3t-t0ken" not in sanitized
        assert "applicationId=app-1" in sanitized
        assert "&x=1" in sanitized

    def test_non_string_messages(self):
        assert sanitize_error_message(404) == "404"
        assert sanitize_error_message("") == ""

    def test_safe_error_details(self):
        exc = ValueError("Error with password=secret123")
        details = get_safe_error_details(exc)

        assert details["type"] == "ValueError"
        assert "secret123" not in details["message"]
        assert "traceback" not in details


class Payload(BaseModel):
    response_id: str


@pytest.fixture
def app():
    """App with handlers registered and the middleware as the outer boundary."""
    app = FastAPI()
    setup_error_handlers(app)
    app.add_middleware(ErrorHandlingMiddleware, debug=False)

    @app.get("/invalid-link")
    async def invalid_link():
        raise InvalidAccessError()

    @app.get("/too-large")
    async def too_large():
        raise PayloadTooLargeError("Media is too large (21.0 MB). Maximum size is 20 MB.")

    @app.get("/rate-limited")
    async def rate_limited():
        raise GatewayRateLimitError()

    @app.get("/upload")
    async def upload():
        raise UploadError()

    @app.get("/http")
    async def http_error():
        raise HTTPException(status_code=401, detail="Unauthorized")

    @app.post("/validate")
    async def validate(payload: Payload):
        return payload

    @app.get("/crash")
    async def crash():
        raise RuntimeError("connection to db failed with password=hunter2")

    @app.get("/integrity")
    async def integrity():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    @app.get("/operational")
    async def operational():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


class TestBCQErrorRendering:
    """Domain errors carry their own status and code."""

    @pytest.mark.parametrize("path,status_code,code", [
        ("/invalid-link", 404, "INVALID_ACCESS"),
        ("/too-large", 413, "PAYLOAD_TOO_LARGE"),
        ("/rate-limited", 429, "AI_RATE_LIMITED"),
        ("/upload", 502, "UPLOAD_FAILED"),
    ])
    def test_status_and_code(self, client, path, status_code, code):
        response = client.get(path)

        assert response.status_code == status_code
        error = response.json()["error"]
        assert error["code"] == code
        assert error["path"] == path
        assert error["method"] == "GET"

    def test_message_is_user_facing(self, client):
        error = client.get("/too-large").json()["error"]
        assert error["message"] == "Media is too large (21.0 MB). Maximum size is 20 MB."

    def test_invalid_access_does_not_reveal_reason(self, client):
        error = client.get("/invalid-link").json()["error"]
        assert "contact the recruiter" in error["message"]

    def test_middleware_alone_renders_bcq_errors(self):
        app = FastAPI()
        app.add_middleware(ErrorHandlingMiddleware)

        @app.get("/upload")
        async def upload():
            raise UploadError()

        response = TestClient(app, raise_server_exceptions=False).get("/upload")
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "UPLOAD_FAILED"


class TestGenericErrors:
    def test_http_exception(self, client):
        response = client.get("/http")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "HTTP_EXCEPTION"
        assert response.json()["error"]["message"] == "Unauthorized"

    def test_validation_error(self, client):
        response = client.post("/validate", json={})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "body.response_id"

    def test_unhandled_exception_hides_internals(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        body = response.text
        assert "hunter2" not in body
        assert "RuntimeError" not in body
        assert response.json()["error"]["code"] == "INTERNAL_SERVER_ERROR"

    def test_integrity_error(self, client):
        response = client.get("/integrity")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INTEGRITY_ERROR"

    def test_operational_error(self, client):
        response = client.get("/operational")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_request_id_is_echoed(self):
        app = FastAPI()
        app.add_middleware(ErrorHandlingMiddleware)

        @app.get("/boom")
        async def boom():
            raise ValueError("bad input")

        response = TestClient(app, raise_server_exceptions=False).get(
            "/boom", headers={"x-request-id": "req-123"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["request_id"] == "req-123"
