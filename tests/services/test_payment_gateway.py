from __future__ import annotations

import asyncio
import hashlib
import json
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from coursepay.services.payment_gateway import (
    API_KEY_HEADER,
    SIGNATURE_HEADER,
    CheckoutRequest,
    GatewayError,
    UddoktaPayGateway,
    format_amount,
    sign,
)


def _request(amount: str = "900.00", coupon: str | None = "SAVE10") -> CheckoutRequest:
    return CheckoutRequest(
        full_name="Test Student",
        email="student@example.com",
        amount=Decimal(amount),
        student_id=uuid4(),
        course_id=uuid4(),
        enrollment_id=uuid4(),
        transaction_id="TXN_1718000000000_abc123xyz",
        coupon_used=coupon,
        discount_amount=Decimal("100.00"),
        redirect_url="http://frontend.test/payment/success",
        cancel_url="http://frontend.test/payment/cancel",
        webhook_url="http://backend.test/v1/payments/webhook",
    )


def _gateway(handler) -> UddoktaPayGateway:
    return UddoktaPayGateway(
        api_key="secret-key",
        base_url="https://gateway.test/api/",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.parametrize(
    ("amount", "rendered"),
    [
        ("1000.00", "1000"),
        ("899.10", "899.1"),
        ("0.50", "0.5"),
        ("1000", "1000"),
        ("1234.56", "1234.56"),
    ],
)
def test_format_amount(amount: str, rendered: str) -> None:
    assert format_amount(Decimal(amount)) == rendered


def test_signature_is_md5_of_key_amount_email_transaction() -> None:
    expected = hashlib.md5(b"secret-key900student@example.comTXN_1").hexdigest()
    assert sign("secret-key", Decimal("900.00"), "student@example.com", "TXN_1") == expected


def test_signature_changes_with_amount() -> None:
    a = sign("k", Decimal("900"), "s@example.com", "TXN_1")
    b = sign("k", Decimal("901"), "s@example.com", "TXN_1")
    assert a != b


def test_checkout_success() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"status": True, "payment_url": "https://pay.test/abc"}
        )

    req = _request()
    session = asyncio.run(_gateway(handler).create_checkout(req))

    assert session.checkout_url == "https://pay.test/abc"
    assert session.transaction_id == req.transaction_id

    sent = seen[0]
    assert sent.method == "POST"
    assert str(sent.url) == "https://gateway.test/api/checkout-v2"
    assert sent.headers[API_KEY_HEADER] == "secret-key"
    assert sent.headers[SIGNATURE_HEADER] == sign(
        "secret-key", req.amount, req.email, req.transaction_id
    )
    body = json.loads(sent.content)
    assert body["amount"] == 900.0
    assert body["email"] == "student@example.com"
    assert body["metadata"]["transaction_id"] == req.transaction_id
    assert body["metadata"]["coupon_used"] == "SAVE10"
    assert body["metadata"]["discount_amount"] == 100.0
    assert body["webhook_url"] == "http://backend.test/v1/payments/webhook"


def test_checkout_refused_carries_gateway_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": False, "message": "Invalid API key"})

    with pytest.raises(GatewayError, match="Invalid API key"):
        asyncio.run(_gateway(handler).create_checkout(_request()))


def test_checkout_without_payment_url_is_refused() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": True})

    with pytest.raises(GatewayError, match="Payment initiation failed"):
        asyncio.run(_gateway(handler).create_checkout(_request()))


def test_checkout_server_error_with_non_json_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="<html>bad gateway</html>")

    with pytest.raises(GatewayError, match="Payment initiation failed"):
        asyncio.run(_gateway(handler).create_checkout(_request()))


def test_checkout_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError, match="Payment gateway unavailable"):
        asyncio.run(_gateway(handler).create_checkout(_request()))
