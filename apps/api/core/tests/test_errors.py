"""Tests for RFC 7807 error handling."""

import pytest
import openai
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from apps.api.core.errors import (
    ExtractionFailedError,
    NotFoundError,
    PayloadTooLargeError,
    UnsupportedFormatError,
    ValidationError,
    register_error_handlers,
)
from packages.statement_import.errors import ExtractionError


class Payload(BaseModel):
    import_log_id: str


@pytest.fixture
def error_app():
    """Create a test app with error handlers registered."""
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/test/not-found")
    async def raise_not_found():
        raise NotFoundError("import log not found")

    @app.get("/test/validation")
    async def raise_validation():
        raise ValidationError("no transactions found in file")

    @app.get("/test/unsupported")
    async def raise_unsupported():
        raise UnsupportedFormatError()

    @app.get("/test/too-large")
    async def raise_too_large():
        raise PayloadTooLargeError()

    @app.get("/test/extraction")
    async def raise_extraction():
        raise ExtractionError()

    @app.post("/test/body")
    async def needs_body(payload: Payload):
        return payload

    @app.get("/test/ai-provider")
    async def raise_ai_provider():
        raise openai.OpenAIError("The api_key client option must be set")

    @app.get("/test/extraction-failed")
    async def raise_extraction_failed():
        raise ExtractionFailedError()

    @app.get("/test/unhandled")
    async def raise_unhandled():
        raise RuntimeError("Unexpected crash")

    return app


@pytest.fixture
def client(error_app):
    return TestClient(error_app, raise_server_exceptions=False)


class TestRFC7807ErrorFormat:
    """All errors should return RFC 7807 Problem Details format."""

    def test_not_found_returns_rfc7807(self, client):
        response = client.get("/test/not-found")
        assert response.status_code == 404
        body = response.json()
        assert body["type"] == "about:blank"
        assert body["title"] == "Not Found"
        assert body["status"] == 404
        assert body["detail"] == "import log not found"
        assert body["instance"] == "/test/not-found"

    def test_validation_error_returns_rfc7807(self, client):
        response = client.get("/test/validation")
        assert response.status_code == 422
        body = response.json()
        assert body["title"] == "Unprocessable Entity"
        assert body["detail"] == "no transactions found in file"

    def test_unsupported_format_lists_supported_formats(self, client):
        response = client.get("/test/unsupported")
        assert response.status_code == 422
        assert response.json()["detail"] == (
            "unsupported file format. Supported formats: PDF (.pdf), CSV (.csv), OFX (.ofx, .qfx)"
        )

    def test_payload_too_large(self, client):
        response = client.get("/test/too-large")
        assert response.status_code == 413
        assert response.json()["title"] == "Payload Too Large"

    def test_extraction_error_is_bad_gateway(self, client):
        response = client.get("/test/extraction")
        assert response.status_code == 502
        body = response.json()
        assert body["title"] == "Bad Gateway"
        assert body["detail"] == "AI response did not contain valid JSON"

    def test_unknown_route_returns_rfc7807(self, client):
        response = client.get("/test/missing")
        assert response.status_code == 404
        assert response.json()["title"] == "Not Found"

    def test_unhandled_error_returns_rfc7807(self, client):
        response = client.get("/test/unhandled")
        assert response.status_code == 500
        body = response.json()
        assert body["title"] == "Internal Server Error"
        assert body["detail"] == "An unexpected error occurred"

    def test_request_validation_returns_rfc7807(self, client):
        response = client.post("/test/body", json={})
        assert response.status_code == 422
        body = response.json()
        assert body["title"] == "Unprocessable Entity"
        assert "import_log_id" in body["detail"]
        assert body["instance"] == "/test/body"

    def test_ai_provider_failure_is_bad_gateway(self, client):
        response = client.get("/test/ai-provider")
        assert response.status_code == 502
        assert response.json()["detail"] == "AI extraction service unavailable"

    def test_extraction_failed_error_is_bad_gateway(self, client):
        response = client.get("/test/extraction-failed")
        assert response.status_code == 502
        body = response.json()
        assert body["title"] == "Bad Gateway"
        assert body["detail"] == "AI response did not contain valid JSON"
