"""Checkout orchestration: enrollment record + gateway session.

initiate_payment runs in three steps so no store transaction is open
while we wait on the network:

  1. transaction: load the student, price the course, create or reset
     the pending enrollment
  2. gateway: open the hosted checkout session
  3. only if step 2 failed, transaction: mark the enrollment failed with
     the gateway's message
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from coursepay.core.config import SETTINGS
from coursepay.db.store import Store
from coursepay.models.course import Course
from coursepay.models.enrollment import Enrollment
from coursepay.services import enrollment_manager
from coursepay.services.errors import NotFoundError, UpstreamFailure
from coursepay.services.payment_gateway import (
    CheckoutRequest,
    GatewayError,
    PaymentGateway,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    payment_url: str
    transaction_id: str
    amount: Decimal
    discount: Decimal
    original_amount: Decimal


async def initiate_payment(
    store: Store,
    gateway: PaymentGateway,
    *,
    student_id: UUID,
    course_id: UUID,
    coupon_code: str | None = None,
) -> CheckoutResult:
    async with store.transaction() as repos:
        student = await repos.users.get_by_id(student_id)
        if student is None:
            raise NotFoundError("User not found")
        enrollment, priced = await enrollment_manager.initiate_in(
            repos, student_id, course_id, coupon_code
        )

    request = CheckoutRequest(
        full_name=student.name,
        email=student.email,
        amount=enrollment.amount,
        student_id=student_id,
        course_id=course_id,
        enrollment_id=enrollment.id,
        transaction_id=enrollment.transaction_id,
        coupon_used=coupon_code if priced.coupon is not None else None,
        discount_amount=enrollment.discount_amount,
        redirect_url=SETTINGS.payment_success_url,
        cancel_url=SETTINGS.payment_cancel_url,
        webhook_url=SETTINGS.payment_webhook_url,
    )
    try:
        session = await gateway.create_checkout(request)
    except GatewayError as e:
        await enrollment_manager.mark_failed(store, enrollment.transaction_id, e.message)
        raise UpstreamFailure(e.message) from e

    logger.info(
        "Payment initiated student=%s course=%s",
        student_id,
        course_id,
        extra={
            "transaction_id": enrollment.transaction_id,
            "enrollment_id": str(enrollment.id),
        },
    )
    return CheckoutResult(
        payment_url=session.checkout_url,
        transaction_id=enrollment.transaction_id,
        amount=enrollment.amount,
        discount=enrollment.discount_amount,
        original_amount=enrollment.original_amount,
    )


async def verify_payment(
    store: Store, transaction_id: str
) -> tuple[Enrollment, Course | None]:
    """Current state of a checkout, for the payment-return page."""
    async with store.transaction() as repos:
        enrollment = await repos.enrollments.get_by_transaction_id(transaction_id)
        if enrollment is None:
            raise NotFoundError("Transaction not found")
        course = await repos.courses.get_by_id(enrollment.course_id)
    return enrollment, course
