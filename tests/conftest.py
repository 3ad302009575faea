from __future__ import annotations

import asyncio
import datetime
import json
from collections.abc import Iterator
from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import UUID

import httpx
import pytest
from fastapi.testclient import TestClient

from coursepay.db.store import InMemoryStore, store
from coursepay.main import app
from coursepay.models.coupon import Coupon
from coursepay.models.course import Course
from coursepay.models.enrollment import Enrollment
from coursepay.models.user import User
from coursepay.services import catalog, coupon_ledger, reconciliation, token_service
from coursepay.services import users_service
from coursepay.services.locks import InMemoryWebhookLocks
from coursepay.services.payment_gateway import (
    UddoktaPayGateway,
    WebhookPayload,
    get_payment_gateway,
)


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Every test starts from empty repositories."""
    assert isinstance(store, InMemoryStore), "tests run against the in-memory store"
    store.clear()


@pytest.fixture(autouse=True)
def reset_dependency_overrides() -> Iterator[None]:
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(sub: str = "test-user", roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=sub, roles=roles)


def auth_headers(user: User, roles: list[str] | None = None) -> dict[str, str]:
    token = mint_token(sub=str(user.id), roles=roles or [user.role])
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Fake gateway
# ---------------------------------------------------------------------------


class FakeGateway:
    """UddoktaPay client whose network is an httpx.MockTransport.

    Answers every checkout with a payment URL unless ``reply`` or
    ``error`` is set; records each outbound request.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.reply: tuple[int, Any] | None = None
        self.error: Exception | None = None
        self.gateway = UddoktaPayGateway(
            api_key="test-api-key",
            base_url="https://gateway.test/api",
            transport=httpx.MockTransport(self._handle),
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.reply is not None:
            status_code, body = self.reply
            return httpx.Response(status_code, json=body)
        txn = json.loads(request.content)["metadata"]["transaction_id"]
        return httpx.Response(
            200,
            json={"status": True, "payment_url": f"https://gateway.test/pay/{txn}"},
        )

    @property
    def last_body(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def gateway() -> FakeGateway:
    fake = FakeGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: fake.gateway
    return fake


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


def create_test_user(
    role: str = "student", email: str | None = None, name: str = "Test User"
) -> User:
    email = email or f"{role}-{len(store._users._by_id)}@example.com"
    return asyncio.run(
        users_service.create_user(store, name=name, email=email, role=role)
    )


def create_test_course(price: str = "1000", lectures: int = 0) -> Course:
    course = asyncio.run(
        catalog.create_course(store, title="Async Python", price=price)
    )
    for n in range(lectures):
        course = asyncio.run(
            catalog.add_lecture(store, course.id, title=f"Lecture {n + 1}")
        )
    return course


def create_test_coupon(
    course_id: UUID,
    code: str = "SAVE10",
    discount_type: str = "percentage",
    discount_value: str = "10",
    usage_limit: int = 1,
    expiry_date: datetime.datetime | None = None,
    used_count: int = 0,
) -> Coupon:
    coupon = asyncio.run(
        coupon_ledger.create_coupon(
            store,
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(discount_value),
            course_id=course_id,
            expiry_date=expiry_date,
            usage_limit=usage_limit,
        )
    )
    if used_count:
        coupon = replace(coupon, used_count=used_count)
        asyncio.run(_save_coupon(coupon))
    return coupon


async def _save_coupon(coupon: Coupon) -> None:
    async with store.transaction() as repos:
        await repos.coupons.update(coupon)


def deliver_webhook(transaction_id: str, payment_status: str = "COMPLETED") -> str:
    payload = WebhookPayload(
        invoice_id="INV-1",
        transaction_id=transaction_id,
        payment_status=payment_status,
        payment_method="bkash",
        amount=Decimal("900"),
    )
    return asyncio.run(
        reconciliation.handle_webhook(store, payload, locks=InMemoryWebhookLocks())
    )


async def _load(kind: str, key: Any) -> Any:
    async with store.transaction() as repos:
        if kind == "enrollment":
            return await repos.enrollments.get_by_transaction_id(key)
        if kind == "coupon":
            return await repos.coupons.get_by_id(key)
        if kind == "course":
            return await repos.courses.get_by_id(key)
        return await repos.users.get_by_id(key)


def load_enrollment(transaction_id: str) -> Enrollment:
    return asyncio.run(_load("enrollment", transaction_id))


def load_coupon(coupon_id: UUID) -> Coupon:
    return asyncio.run(_load("coupon", coupon_id))


def load_course(course_id: UUID) -> Course:
    return asyncio.run(_load("course", course_id))


def load_user(user_id: UUID) -> User:
    return asyncio.run(_load("user", user_id))
