"""Tests for the global exception handlers."""

import pytest
from fastapi import FastAPI, Request
from starlette.testclient import TestClient

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from core.finance.validation import CalculationInputError


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/calculation")
    async def calculation():
        raise CalculationInputError({"items.0.quantity": "must be greater than or equal to 0.01"})

    @app.get("/missing")
    async def missing():
        raise ValueError("Document 123 not found")

    @app.get("/invalid")
    async def invalid():
        raise ValueError("Document 123 is not a draft")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database exploded")

    @app.get("/typed")
    async def typed(request: Request, limit: int):
        return {"limit": limit}

    return TestClient(app, raise_server_exceptions=False)


class TestErrorHandlers:

    def test_calculation_error_is_422_with_details(self, client):
        response = client.get("/calculation")

        assert response.status_code == 422
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"] == {"items.0.quantity": "must be greater than or equal to 0.01"}
        assert body["meta"]["request_id"] == response.headers["X-Request-ID"]

    def test_not_found_value_error_is_404(self, client):
        response = client.get("/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_other_value_error_is_400(self, client):
        response = client.get("/invalid")

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Document 123 is not a draft"

    def test_request_validation_is_422(self, client):
        response = client.get("/typed", params={"limit": "many"})

        assert response.status_code == 422
        assert "limit" in response.json()["error"]["details"]

    def test_unhandled_error_hides_details(self, client, caplog):
        response = client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "exploded" not in body["error"]["message"]
        assert "Unhandled exception" in caplog.text
