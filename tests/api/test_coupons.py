from __future__ import annotations

import datetime
from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import (
    auth_headers,
    create_test_coupon,
    create_test_course,
    create_test_user,
    deliver_webhook,
    mint_token,
)

_YESTERDAY = datetime.datetime.now(datetime.UTC) - datetime.timedelta(days=1)


def _admin_headers() -> dict[str, str]:
    return auth_headers(create_test_user(role="admin"))


def _coupon_body(course_id, **overrides) -> dict:
    body = {
        "code": "launch",
        "discount_type": "percentage",
        "discount_value": "20",
        "course_id": str(course_id),
    }
    body.update(overrides)
    return body


# ---- create ----


def test_admin_creates_coupon(client: TestClient) -> None:
    course = create_test_course()
    resp = client.post(
        "/v1/coupons",
        json=_coupon_body(course.id, usage_limit=50),
        headers=_admin_headers(),
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["code"] == "LAUNCH"
    assert data["discount_value"] == 20.0
    assert data["usage_limit"] == 50
    assert data["used_count"] == 0
    assert data["course_id"] == str(course.id)


def test_duplicate_code_is_409(client: TestClient) -> None:
    course = create_test_course()
    headers = _admin_headers()
    client.post("/v1/coupons", json=_coupon_body(course.id), headers=headers)

    resp = client.post("/v1/coupons", json=_coupon_body(course.id), headers=headers)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Coupon code already exists"


def test_create_rejects_percentage_over_100(client: TestClient) -> None:
    course = create_test_course()
    resp = client.post(
        "/v1/coupons",
        json=_coupon_body(course.id, discount_value="150"),
        headers=_admin_headers(),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Percentage discount cannot exceed 100%"


# ---- read ----


def test_list_course_coupons_is_public(client: TestClient) -> None:
    course = create_test_course()
    create_test_coupon(course.id, code="A")
    create_test_coupon(course.id, code="B", expiry_date=_YESTERDAY)

    resp = client.get(f"/v1/coupons/course/{course.id}")
    assert resp.status_code == 200
    assert sorted(c["code"] for c in resp.json()) == ["A", "B"]


def test_list_valid_coupons_hides_expired(client: TestClient) -> None:
    course = create_test_course()
    create_test_coupon(course.id, code="A")
    create_test_coupon(course.id, code="B", expiry_date=_YESTERDAY)
    student = create_test_user()

    resp = client.get(f"/v1/coupons/valid/{course.id}", headers=auth_headers(student))
    assert resp.status_code == 200
    assert [c["code"] for c in resp.json()] == ["A"]


def test_get_unknown_coupon(client: TestClient) -> None:
    resp = client.get(f"/v1/coupons/{uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Coupon not found"


# ---- update / delete ----


def test_admin_updates_coupon(client: TestClient) -> None:
    course = create_test_course()
    coupon = create_test_coupon(course.id, usage_limit=2)

    resp = client.put(
        f"/v1/coupons/{coupon.id}",
        json={"usage_limit": 10, "discount_type": "flat", "discount_value": "99"},
        headers=_admin_headers(),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["usage_limit"] == 10
    assert data["discount_type"] == "flat"
    assert data["discount_value"] == 99.0
    assert data["code"] == "SAVE10"


def test_update_cannot_drop_limit_below_uses(client: TestClient) -> None:
    course = create_test_course()
    coupon = create_test_coupon(course.id, usage_limit=5, used_count=4)

    resp = client.put(
        f"/v1/coupons/{coupon.id}",
        json={"usage_limit": 3},
        headers=_admin_headers(),
    )
    assert resp.status_code == 400


def test_admin_deletes_coupon(client: TestClient) -> None:
    course = create_test_course()
    coupon = create_test_coupon(course.id)
    headers = _admin_headers()

    assert client.delete(f"/v1/coupons/{coupon.id}", headers=headers).status_code == 204
    assert client.get(f"/v1/coupons/{coupon.id}").status_code == 404
    assert client.delete(f"/v1/coupons/{coupon.id}", headers=headers).status_code == 404


# ---- validation endpoints ----


def test_public_validate(client: TestClient) -> None:
    course = create_test_course(price="1000")
    create_test_coupon(course.id)

    resp = client.post(
        "/v1/coupons/validate", json={"code": "save10", "course_id": str(course.id)}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["original_price"] == 1000.0
    assert data["discounted_price"] == 900.0
    assert data["discount_amount"] == 100.0


def test_public_validate_expired(client: TestClient) -> None:
    course = create_test_course()
    create_test_coupon(course.id, expiry_date=_YESTERDAY)

    resp = client.post(
        "/v1/coupons/validate", json={"code": "SAVE10", "course_id": str(course.id)}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Coupon has expired"


def test_expiry_without_offset_is_read_as_utc(client: TestClient) -> None:
    course = create_test_course()
    headers = _admin_headers()
    created = client.post(
        "/v1/coupons",
        json=_coupon_body(course.id, expiry_date="2099-01-01T00:00:00"),
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["expiry_date"].startswith("2099-01-01T00:00:00")

    resp = client.post(
        "/v1/coupons/validate", json={"code": "launch", "course_id": str(course.id)}
    )
    assert resp.status_code == 200
    assert resp.json()["discounted_price"] == 800.0

    listed = client.get(f"/v1/coupons/valid/{course.id}", headers=headers)
    assert listed.status_code == 200
    assert [c["code"] for c in listed.json()] == ["LAUNCH"]


def test_past_expiry_without_offset_rejects(client: TestClient) -> None:
    course = create_test_course()
    headers = _admin_headers()
    coupon_id = client.post(
        "/v1/coupons", json=_coupon_body(course.id), headers=headers
    ).json()["id"]

    updated = client.put(
        f"/v1/coupons/{coupon_id}",
        json={"expiry_date": "2000-01-01T00:00:00"},
        headers=headers,
    )
    assert updated.status_code == 200

    resp = client.post(
        "/v1/coupons/validate", json={"code": "LAUNCH", "course_id": str(course.id)}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Coupon has expired"


def test_public_validate_exhausted(client: TestClient) -> None:
    course = create_test_course()
    create_test_coupon(course.id, usage_limit=1, used_count=1)

    resp = client.post(
        "/v1/coupons/validate", json={"code": "SAVE10", "course_id": str(course.id)}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Coupon usage limit reached"


def test_enrollment_validate_rejects_reuse(client: TestClient, gateway) -> None:
    course = create_test_course()
    create_test_coupon(course.id, usage_limit=10)
    student = create_test_user()
    headers = auth_headers(student)
    txn = client.post(
        "/v1/payments/initiate",
        json={"course_id": str(course.id), "coupon_code": "SAVE10"},
        headers=headers,
    ).json()["transaction_id"]
    deliver_webhook(txn)

    resp = client.post(
        "/v1/coupons/validate-enrollment",
        json={"code": "SAVE10", "course_id": str(course.id)},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "You have already used this coupon for this course"


def test_enrollment_validate_needs_user_subject(client: TestClient) -> None:
    course = create_test_course()
    token = mint_token(sub="service-account")
    resp = client.post(
        "/v1/coupons/validate-enrollment",
        json={"code": "SAVE10", "course_id": str(course.id)},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token subject"
