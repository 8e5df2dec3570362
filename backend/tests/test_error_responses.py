from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy.exc import OperationalError

from kct_orders.domain_errors import DomainError
from kct_orders.error_responses import build_domain_error_response, register_error_handlers


class _Payload(BaseModel):
    quantity: int


def _app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    @app.post("/domain")
    def _domain():
        raise DomainError(
            code="ORDER_NOT_FOUND",
            http_status=404,
            message="Order not found",
            details={"order_id": "abc"},
        )

    @app.post("/validate")
    def _validate(body: _Payload):
        return {"data": body.quantity}

    @app.post("/store")
    def _store():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    @app.post("/boom")
    def _boom():
        raise RuntimeError("unexpected")

    return app


def test_domain_error_envelope_contains_code_message_and_details() -> None:
    response = build_domain_error_response(
        DomainError(code="ORDER_LOCKED", http_status=409, message="Order is locked", details={"locked": True})
    )

    assert response.status_code == 409
    body = response.body.decode("utf-8")
    assert '"code":"ORDER_LOCKED"' in body
    assert '"message":"Order is locked"' in body
    assert '"details":{"locked":true}' in body


def test_envelope_omits_details_when_none() -> None:
    response = build_domain_error_response(
        DomainError(code="NO_DETAILS", http_status=400, message="bad input", details=None)
    )

    body = response.body.decode("utf-8")
    assert response.status_code == 400
    assert '"details"' not in body


def test_handlers_map_errors_to_envelope() -> None:
    client = TestClient(_app(), raise_server_exceptions=False)

    not_found = client.post("/domain")
    assert not_found.status_code == 404
    assert not_found.json() == {
        "error": {"code": "ORDER_NOT_FOUND", "message": "Order not found", "details": {"order_id": "abc"}}
    }

    invalid = client.post("/validate", json={"quantity": "many"})
    assert invalid.status_code == 400
    assert invalid.json()["error"]["code"] == "VALIDATION_ERROR"
    assert invalid.json()["error"]["message"].startswith("quantity:")

    store = client.post("/store")
    assert store.status_code == 500
    assert store.json()["error"]["code"] == "STORE_ERROR"

    boom = client.post("/boom")
    assert boom.status_code == 500
    assert boom.json()["error"] == {"code": "INTERNAL_ERROR", "message": "unexpected"}
