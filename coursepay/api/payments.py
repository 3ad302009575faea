"""Payment endpoints: checkout, gateway webhook, status lookup.

  Client  -> POST /v1/payments/initiate        -> redirect to payment_url
  Gateway -> POST /v1/payments/webhook         -> enrollment settled
  Client  -> GET  /v1/payments/verify/{txn}    -> status for the return page
  Client  -> GET  /v1/payments/enrollments     -> the caller's enrollments

The webhook is unauthenticated: the gateway calls it server-to-server.
It never trusts the body's amount or metadata for state changes; it
only uses transaction_id to find the enrollment and payment_status to
pick the transition.
"""

from __future__ import annotations

import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from coursepay.api.coupons import CouponQuoteOut, quote_out
from coursepay.api.dependencies import (
    current_user_id,
    http_error,
    provisioned_user_id,
)
from coursepay.api.enrollments import EnrollmentOut, enrollment_out
from coursepay.db.store import Store, get_store
from coursepay.services import (
    coupon_ledger,
    enrollment_manager,
    payments_service,
    reconciliation,
)
from coursepay.services.errors import ServiceError
from coursepay.services.payment_gateway import (
    PaymentGateway,
    WebhookPayload,
    get_payment_gateway,
)

router = APIRouter(prefix="/v1/payments", tags=["payments"])


# --- Pydantic schemas ---


class InitiateIn(BaseModel):
    course_id: UUID
    coupon_code: str | None = None


class InitiateOut(BaseModel):
    success: bool = True
    message: str = "Payment initiated successfully"
    payment_url: str
    transaction_id: str
    amount: float
    discount: float
    original_amount: float


class WebhookOut(BaseModel):
    success: bool = True
    message: str = "Webhook processed"


class VerifyCourseOut(BaseModel):
    id: str
    title: str
    thumbnail: str | None


class VerifyOut(BaseModel):
    id: str
    transaction_id: str
    payment_status: str
    amount: float
    enrolled_at: datetime.datetime | None
    course: VerifyCourseOut | None


class ValidateCouponIn(BaseModel):
    coupon_code: str
    course_id: UUID


# --- Endpoints ---


@router.post("/initiate", response_model=InitiateOut)
async def initiate_payment(
    body: InitiateIn,
    student_id: Annotated[UUID, Depends(provisioned_user_id)],
    store: Annotated[Store, Depends(get_store)],
    gateway: Annotated[PaymentGateway, Depends(get_payment_gateway)],
) -> InitiateOut:
    try:
        result = await payments_service.initiate_payment(
            store,
            gateway,
            student_id=student_id,
            course_id=body.course_id,
            coupon_code=body.coupon_code,
        )
    except ServiceError as e:
        raise http_error(e) from None
    return InitiateOut(
        payment_url=result.payment_url,
        transaction_id=result.transaction_id,
        amount=float(result.amount),
        discount=float(result.discount),
        original_amount=float(result.original_amount),
    )


@router.post("/webhook", response_model=WebhookOut)
async def payment_webhook(
    payload: WebhookPayload,
    store: Annotated[Store, Depends(get_store)],
) -> WebhookOut:
    try:
        await reconciliation.handle_webhook(store, payload)
    except ServiceError as e:
        raise http_error(e) from None
    return WebhookOut()


@router.get("/verify/{transaction_id}", response_model=VerifyOut)
async def verify_payment(
    transaction_id: str,
    _user_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> VerifyOut:
    try:
        enrollment, course = await payments_service.verify_payment(
            store, transaction_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return VerifyOut(
        id=str(enrollment.id),
        transaction_id=enrollment.transaction_id,
        payment_status=enrollment.payment_status,
        amount=float(enrollment.amount),
        enrolled_at=enrollment.enrolled_at,
        course=(
            VerifyCourseOut(
                id=str(course.id), title=course.title, thumbnail=course.thumbnail
            )
            if course is not None
            else None
        ),
    )


@router.post("/validate-coupon", response_model=CouponQuoteOut)
async def validate_coupon(
    body: ValidateCouponIn,
    student_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> CouponQuoteOut:
    try:
        priced = await coupon_ledger.validate(
            store, body.coupon_code, body.course_id, student_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return quote_out(priced)


@router.get("/enrollments", response_model=list[EnrollmentOut])
async def payment_enrollments(
    student_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> list[EnrollmentOut]:
    """The caller's enrollments, same listing as /v1/enrollments/me."""
    enrollments = await enrollment_manager.list_for_student(store, student_id)
    return [enrollment_out(e) for e in enrollments]
