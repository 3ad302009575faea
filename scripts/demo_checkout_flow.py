"""Demo: walk checkout -> webhook -> verify using FastAPI TestClient.

Run with:
    python scripts/demo_checkout_flow.py

Uses the in-memory store (leave DATABASE_URL unset) and a fake gateway
built on httpx.MockTransport, so nothing leaves the process.
"""

from __future__ import annotations

import asyncio
import json

import httpx
from fastapi.testclient import TestClient

from coursepay.db.store import store
from coursepay.main import app
from coursepay.services import token_service, users_service
from coursepay.services.payment_gateway import UddoktaPayGateway, get_payment_gateway


def _fake_gateway(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    txn = body["metadata"]["transaction_id"]
    return httpx.Response(
        200,
        json={"status": True, "payment_url": f"https://pay.example/checkout/{txn}"},
    )


def main() -> None:
    app.dependency_overrides[get_payment_gateway] = lambda: UddoktaPayGateway(
        api_key="demo-key",
        base_url="https://gateway.example/api",
        transport=httpx.MockTransport(_fake_gateway),
    )
    client = TestClient(app)

    # ── Seed users ──────────────────────────────────────────────────
    admin = asyncio.run(
        users_service.create_user(
            store, name="Demo Admin", email="admin@example.com", role="admin"
        )
    )
    student = asyncio.run(
        users_service.create_user(store, name="Demo Student", email="student@example.com")
    )
    admin_auth = {
        "Authorization": "Bearer "
        + token_service.create_access_token(sub=str(admin.id), roles=["admin"])
    }
    student_auth = {
        "Authorization": "Bearer "
        + token_service.create_access_token(sub=str(student.id))
    }

    # ── Course + coupon ─────────────────────────────────────────────
    course = client.post(
        "/v1/courses",
        json={"title": "Async Python", "price": "1000", "features": "Videos, Quizzes"},
        headers=admin_auth,
    ).json()
    for title in ("Intro", "Event loop"):
        client.post(
            f"/v1/courses/{course['id']}/lectures",
            json={"title": title},
            headers=admin_auth,
        )
    coupon = client.post(
        "/v1/coupons",
        json={
            "code": "launch10",
            "discount_type": "percentage",
            "discount_value": "10",
            "course_id": course["id"],
        },
        headers=admin_auth,
    ).json()
    print(f"Course {course['id']} coupon {coupon['code']}")

    # ── Checkout ────────────────────────────────────────────────────
    resp = client.post(
        "/v1/payments/initiate",
        json={"course_id": course["id"], "coupon_code": "launch10"},
        headers=student_auth,
    )
    checkout = resp.json()
    print(f"Initiate -> {resp.status_code} {checkout}")

    # ── Gateway webhook ─────────────────────────────────────────────
    resp = client.post(
        "/v1/payments/webhook",
        json={
            "invoice_id": "INV-DEMO",
            "transaction_id": checkout["transaction_id"],
            "payment_status": "COMPLETED",
            "payment_method": "bkash",
            "amount": checkout["amount"],
        },
    )
    print(f"Webhook  -> {resp.status_code} {resp.json()}")

    resp = client.get(
        f"/v1/payments/verify/{checkout['transaction_id']}", headers=student_auth
    )
    print(f"Verify   -> {resp.status_code} {resp.json()}")

    resp = client.get(f"/v1/courses/{course['id']}")
    print(f"Students enrolled: {resp.json()['student_count']}")


if __name__ == "__main__":
    main()
