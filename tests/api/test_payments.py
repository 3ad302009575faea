from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from coursepay.services import token_service
from tests.conftest import (
    FakeGateway,
    auth_headers,
    create_test_coupon,
    create_test_course,
    create_test_user,
    deliver_webhook,
    load_course,
    load_enrollment,
    load_user,
    mint_token,
)


def _initiate(client: TestClient, student, course_id, coupon_code=None):
    body: dict = {"course_id": str(course_id)}
    if coupon_code is not None:
        body["coupon_code"] = coupon_code
    return client.post(
        "/v1/payments/initiate", json=body, headers=auth_headers(student)
    )


def _webhook(client: TestClient, transaction_id: str, status: str = "COMPLETED"):
    return client.post(
        "/v1/payments/webhook",
        json={
            "invoice_id": "INV-42",
            "transaction_id": transaction_id,
            "payment_status": status,
            "payment_method": "nagad",
            "amount": "900.00",
            "metadata": {"course_id": "ignored"},
        },
    )


# ---- initiate ----


def test_initiate_returns_payment_url(client: TestClient, gateway: FakeGateway) -> None:
    student = create_test_user()
    course = create_test_course(price="1000")
    create_test_coupon(course.id)

    resp = _initiate(client, student, course.id, "save10")

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["message"] == "Payment initiated successfully"
    assert data["payment_url"] == f"https://gateway.test/pay/{data['transaction_id']}"
    assert data["amount"] == 900.0
    assert data["discount"] == 100.0
    assert data["original_amount"] == 1000.0
    assert load_enrollment(data["transaction_id"]).payment_status == "pending"


def test_initiate_requires_token(client: TestClient, gateway: FakeGateway) -> None:
    course = create_test_course()
    resp = client.post("/v1/payments/initiate", json={"course_id": str(course.id)})
    assert resp.status_code == 401
    assert gateway.requests == []


def test_initiate_unknown_course(client: TestClient, gateway: FakeGateway) -> None:
    student = create_test_user()
    resp = _initiate(client, student, uuid4())
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Course not found"


def _claims_headers(sub, **claims) -> dict[str, str]:
    token = token_service.create_access_token(sub=str(sub), **claims)
    return {"Authorization": f"Bearer {token}"}


def test_initiate_provisions_user_from_token(
    client: TestClient, gateway: FakeGateway
) -> None:
    course = create_test_course(price="500")
    user_id = uuid4()
    headers = _claims_headers(
        user_id, roles=["student"], name="Rina Das", email="Rina@Example.com"
    )

    resp = client.post(
        "/v1/payments/initiate", json={"course_id": str(course.id)}, headers=headers
    )

    assert resp.status_code == 200
    assert gateway.last_body["full_name"] == "Rina Das"
    assert gateway.last_body["email"] == "rina@example.com"
    user = load_user(user_id)
    assert user.name == "Rina Das"
    assert user.email == "rina@example.com"
    assert user.role == "student"

    deliver_webhook(resp.json()["transaction_id"])
    assert course.id in load_user(user_id).enrolled_courses


def test_initiate_keeps_existing_user_record(
    client: TestClient, gateway: FakeGateway
) -> None:
    student = create_test_user(name="Stored Name")
    course = create_test_course()
    headers = _claims_headers(student.id, name="Token Name", email="other@example.com")

    resp = client.post(
        "/v1/payments/initiate", json={"course_id": str(course.id)}, headers=headers
    )

    assert resp.status_code == 200
    assert gateway.last_body["full_name"] == "Stored Name"
    assert load_user(student.id) == student


def test_initiate_token_without_email_is_404(
    client: TestClient, gateway: FakeGateway
) -> None:
    course = create_test_course()
    headers = {"Authorization": f"Bearer {mint_token(sub=str(uuid4()))}"}

    resp = client.post(
        "/v1/payments/initiate", json={"course_id": str(course.id)}, headers=headers
    )

    assert resp.status_code == 404
    assert resp.json()["detail"] == "User not found"
    assert gateway.requests == []


def test_initiate_invalid_coupon(client: TestClient, gateway: FakeGateway) -> None:
    student = create_test_user()
    course = create_test_course()

    resp = _initiate(client, student, course.id, "NOPE")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Invalid coupon code for this course"
    assert gateway.requests == []


def test_initiate_gateway_refusal_is_502(
    client: TestClient, gateway: FakeGateway
) -> None:
    gateway.reply = (200, {"status": False, "message": "Invalid API key"})
    student = create_test_user()
    course = create_test_course()

    resp = _initiate(client, student, course.id)

    assert resp.status_code == 502
    assert resp.json()["detail"] == "Invalid API key"
    txn = gateway.last_body["metadata"]["transaction_id"]
    assert load_enrollment(txn).payment_status == "failed"


def test_initiate_after_completed_payment_is_rejected(
    client: TestClient, gateway: FakeGateway
) -> None:
    student = create_test_user()
    course = create_test_course()
    txn = _initiate(client, student, course.id).json()["transaction_id"]
    _webhook(client, txn)

    resp = _initiate(client, student, course.id)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "You are already enrolled in this course"


# ---- webhook ----


def test_webhook_completes_enrollment(client: TestClient, gateway: FakeGateway) -> None:
    student = create_test_user()
    course = create_test_course()
    txn = _initiate(client, student, course.id).json()["transaction_id"]

    resp = _webhook(client, txn)

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Webhook processed"}
    assert load_enrollment(txn).payment_status == "completed"
    assert load_course(course.id).student_count == 1


def test_webhook_redelivery_is_acknowledged(
    client: TestClient, gateway: FakeGateway
) -> None:
    student = create_test_user()
    course = create_test_course()
    txn = _initiate(client, student, course.id).json()["transaction_id"]

    assert _webhook(client, txn).status_code == 200
    assert _webhook(client, txn).status_code == 200
    assert load_course(course.id).student_count == 1


def test_webhook_unknown_transaction(client: TestClient) -> None:
    resp = _webhook(client, "TXN_0_missing00")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Enrollment not found"


def test_webhook_requires_transaction_id(client: TestClient) -> None:
    resp = client.post("/v1/payments/webhook", json={"payment_status": "COMPLETED"})
    assert resp.status_code == 422


# ---- verify ----


def test_verify_reports_status_and_course(
    client: TestClient, gateway: FakeGateway
) -> None:
    student = create_test_user()
    course = create_test_course(price="750")
    txn = _initiate(client, student, course.id).json()["transaction_id"]

    resp = client.get(f"/v1/payments/verify/{txn}", headers=auth_headers(student))
    assert resp.status_code == 200
    assert resp.json()["payment_status"] == "pending"

    _webhook(client, txn)
    data = client.get(
        f"/v1/payments/verify/{txn}", headers=auth_headers(student)
    ).json()
    assert data["transaction_id"] == txn
    assert data["payment_status"] == "completed"
    assert data["amount"] == 750.0
    assert data["course"]["id"] == str(course.id)
    assert data["course"]["title"] == "Async Python"


def test_verify_unknown_transaction(client: TestClient) -> None:
    student = create_test_user()
    resp = client.get(
        "/v1/payments/verify/TXN_0_missing00", headers=auth_headers(student)
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Transaction not found"


def test_verify_requires_token(client: TestClient) -> None:
    assert client.get("/v1/payments/verify/TXN_0_missing00").status_code == 401


# ---- coupon pre-check at checkout ----


def test_validate_coupon_for_checkout(client: TestClient) -> None:
    student = create_test_user()
    course = create_test_course(price="1000")
    create_test_coupon(course.id, discount_type="flat", discount_value="300")

    resp = client.post(
        "/v1/payments/validate-coupon",
        json={"coupon_code": "SAVE10", "course_id": str(course.id)},
        headers=auth_headers(student),
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["code"] == "SAVE10"
    assert data["discounted_price"] == 700.0
    assert data["savings"] == 300.0


# ---- enrollments ----


def test_payment_enrollments_lists_own(client: TestClient, gateway: FakeGateway) -> None:
    student = create_test_user()
    other = create_test_user()
    course = create_test_course()
    txn = _initiate(client, student, course.id).json()["transaction_id"]
    _initiate(client, other, course.id)

    resp = client.get("/v1/payments/enrollments", headers=auth_headers(student))

    assert resp.status_code == 200
    assert [e["transaction_id"] for e in resp.json()] == [txn]
    mine = client.get("/v1/enrollments/me", headers=auth_headers(student))
    assert resp.json() == mine.json()


def test_payment_enrollments_requires_token(client: TestClient) -> None:
    assert client.get("/v1/payments/enrollments").status_code == 401
