"""Coupon endpoints.

Admins manage coupons; anyone may pre-check a code against a course;
signed-in students get the full enrollment-time check, which also
refuses a coupon they have already used.
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from coursepay.api.dependencies import (
    current_user_id,
    http_error,
    require_role,
    require_user,
)
from coursepay.db.store import Store, get_store
from coursepay.models.coupon import Coupon
from coursepay.models.principal import Principal
from coursepay.services import coupon_ledger
from coursepay.services.errors import ServiceError

router = APIRouter(prefix="/v1/coupons", tags=["coupons"])

_require_admin = require_role("admin")


# --- Pydantic schemas ---


class CouponCreateIn(BaseModel):
    code: str
    discount_type: str
    discount_value: Decimal
    course_id: UUID
    expiry_date: datetime.datetime | None = None
    usage_limit: int | None = None


class CouponUpdateIn(BaseModel):
    code: str | None = None
    discount_type: str | None = None
    discount_value: Decimal | None = None
    expiry_date: datetime.datetime | None = None
    usage_limit: int | None = None


class CouponValidateIn(BaseModel):
    code: str
    course_id: UUID


class CouponOut(BaseModel):
    id: str
    code: str
    discount_type: str
    discount_value: float
    course_id: str
    expiry_date: datetime.datetime | None
    usage_limit: int
    used_count: int
    created_at: datetime.datetime | None


class CouponQuoteOut(BaseModel):
    id: str
    code: str
    discount_type: str
    discount_value: float
    original_price: float
    discounted_price: float
    discount_amount: float
    savings: float


def _out(c: Coupon) -> CouponOut:
    return CouponOut(
        id=str(c.id),
        code=c.code,
        discount_type=c.discount_type,
        discount_value=float(c.discount_value),
        course_id=str(c.course_id),
        expiry_date=c.expiry_date,
        usage_limit=c.usage_limit,
        used_count=c.used_count,
        created_at=c.created_at,
    )


def quote_out(priced: coupon_ledger.CouponQuote) -> CouponQuoteOut:
    coupon = priced.coupon
    if coupon is None:
        raise HTTPException(status_code=500, detail="coupon quote without coupon")
    return CouponQuoteOut(
        id=str(coupon.id),
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=float(coupon.discount_value),
        original_price=float(priced.original_price),
        discounted_price=float(priced.discounted_price),
        discount_amount=float(priced.discount_amount),
        savings=float(priced.discount_amount),
    )


# --- Admin lifecycle ---


@router.post("", response_model=CouponOut, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    body: CouponCreateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> CouponOut:
    try:
        coupon = await coupon_ledger.create_coupon(
            store,
            code=body.code,
            discount_type=body.discount_type,
            discount_value=body.discount_value,
            course_id=body.course_id,
            expiry_date=body.expiry_date,
            usage_limit=body.usage_limit,
        )
    except ServiceError as e:
        raise http_error(e) from None
    return _out(coupon)


@router.get("/course/{course_id}", response_model=list[CouponOut])
async def list_course_coupons(
    course_id: UUID,
    store: Annotated[Store, Depends(get_store)],
) -> list[CouponOut]:
    coupons = await coupon_ledger.list_coupons_for_course(store, course_id)
    return [_out(c) for c in coupons]


@router.get("/valid/{course_id}", response_model=list[CouponOut])
async def list_valid_coupons(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> list[CouponOut]:
    coupons = await coupon_ledger.list_valid_for_course(store, course_id)
    return [_out(c) for c in coupons]


@router.get("/{coupon_id}", response_model=CouponOut)
async def get_coupon(
    coupon_id: UUID,
    store: Annotated[Store, Depends(get_store)],
) -> CouponOut:
    try:
        coupon = await coupon_ledger.get_coupon(store, coupon_id)
    except ServiceError as e:
        raise http_error(e) from None
    return _out(coupon)


@router.put("/{coupon_id}", response_model=CouponOut)
async def update_coupon(
    coupon_id: UUID,
    body: CouponUpdateIn,
    _admin: Annotated[Principal, Depends(_require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> CouponOut:
    try:
        coupon = await coupon_ledger.update_coupon(
            store, coupon_id, body.model_dump(exclude_unset=True)
        )
    except ServiceError as e:
        raise http_error(e) from None
    return _out(coupon)


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coupon(
    coupon_id: UUID,
    _admin: Annotated[Principal, Depends(_require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> None:
    try:
        await coupon_ledger.delete_coupon(store, coupon_id)
    except ServiceError as e:
        raise http_error(e) from None


# --- Validation ---


@router.post("/validate", response_model=CouponQuoteOut)
async def validate_coupon(
    body: CouponValidateIn,
    store: Annotated[Store, Depends(get_store)],
) -> CouponQuoteOut:
    """Public pre-check; does not look at who is asking."""
    try:
        priced = await coupon_ledger.validate_for_course(
            store, body.code, body.course_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return quote_out(priced)


@router.post("/validate-enrollment", response_model=CouponQuoteOut)
async def validate_for_enrollment(
    body: CouponValidateIn,
    student_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> CouponQuoteOut:
    try:
        priced = await coupon_ledger.validate(
            store, body.code, body.course_id, student_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return quote_out(priced)
