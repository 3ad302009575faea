"""Assert that gateway credentials and bearer tokens never reach the logs.

Checkout logs at every step and the gateway client holds the merchant
API key; a careless f-string in any of those lines would leak it into
the log pipeline.
"""

from __future__ import annotations

import logging
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from coursepay.services.payment_gateway import sign
from tests.conftest import (
    FakeGateway,
    auth_headers,
    create_test_course,
    create_test_user,
)


def _all_log_text(caplog: pytest.LogCaptureFixture) -> str:
    return " ".join(caplog.messages)


def test_checkout_does_not_log_api_key_or_signature(
    client: TestClient, gateway: FakeGateway, caplog: pytest.LogCaptureFixture
) -> None:
    student = create_test_user()
    course = create_test_course()

    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/v1/payments/initiate",
            json={"course_id": str(course.id)},
            headers=auth_headers(student),
        )
    assert resp.status_code == 200

    signature = gateway.requests[0].headers["RT-UDDOKTAPAY-SIGNATURE"]
    text = _all_log_text(caplog)
    assert "test-api-key" not in text, "Gateway API key found in log output!"
    assert signature not in text, "Request signature found in log output!"


def test_gateway_failure_does_not_log_api_key(
    client: TestClient, gateway: FakeGateway, caplog: pytest.LogCaptureFixture
) -> None:
    gateway.reply = (401, {"status": False, "message": "Unauthorized"})
    student = create_test_user()
    course = create_test_course()

    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/v1/payments/initiate",
            json={"course_id": str(course.id)},
            headers=auth_headers(student),
        )
    assert resp.status_code == 502
    assert "test-api-key" not in _all_log_text(caplog)


def test_rejected_token_is_not_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    student = create_test_user()
    headers = auth_headers(student)
    token = headers["Authorization"].removeprefix("Bearer ")
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")

    with caplog.at_level(logging.DEBUG):
        client.get("/v1/enrollments/me", headers=headers)
        client.get(
            "/v1/enrollments/me", headers={"Authorization": f"Bearer {tampered}"}
        )

    text = _all_log_text(caplog)
    assert token not in text
    assert tampered not in text


def test_signature_helper_output_is_not_the_key() -> None:
    digest = sign("test-api-key", Decimal("100"), "a@example.com", "TXN_1")
    assert "test-api-key" not in digest
    assert len(digest) == 32
