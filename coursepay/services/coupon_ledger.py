"""Coupon ledger: validation, pricing, and the admin coupon lifecycle.

Validation order matters because each failure has its own message and
metric label:

  1. no coupon with this code for this course  -> CouponNotFoundError
  2. expiry date set and already passed        -> CouponExpiredError
  3. used_count has reached usage_limit        -> CouponLimitReachedError
  4. the student already holds an enrollment
     carrying this coupon (any payment status) -> CouponAlreadyUsedError

Validation never writes.  used_count only moves when a payment is
confirmed, inside the reconciliation transaction.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from coursepay.core.metrics import COUPON_VALIDATIONS
from coursepay.db.store import Repos, Store
from coursepay.models.coupon import DISCOUNT_TYPES, Coupon, normalize_code
from coursepay.models.course import Course
from coursepay.services.errors import (
    CouponAlreadyUsedError,
    CouponCodeTakenError,
    CouponExpiredError,
    CouponLimitReachedError,
    CouponNotFoundError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class CouponQuote:
    """Price of a course after applying a coupon (or no coupon)."""

    coupon: Coupon | None
    original_price: Decimal
    discounted_price: Decimal
    discount_amount: Decimal

    @staticmethod
    def full_price(price: Decimal) -> CouponQuote:
        price = _money(price)
        return CouponQuote(
            coupon=None,
            original_price=price,
            discounted_price=price,
            discount_amount=Decimal("0.00"),
        )


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_discount(
    price: Decimal, discount_type: str, discount_value: Decimal
) -> tuple[Decimal, Decimal]:
    """Return ``(discount_amount, discounted_price)`` rounded to cents.

    percentage: discount = price * value / 100, discounted = price - discount
    flat:       discount = value, discounted = max(0, price - value)
    """
    price = _money(price)
    value = Decimal(discount_value)
    if discount_type == "percentage":
        discount = _money(price * value / 100)
    elif discount_type == "flat":
        discount = _money(value)
    else:
        raise ValueError(f"unknown discount type {discount_type!r}")
    # discounted derives from the rounded discount, never rounded on its own.
    return discount, max(Decimal("0.00"), price - discount)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def _as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """Expiry dates without an offset are read as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=datetime.UTC)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


async def quote(
    repos: Repos,
    code: str,
    course: Course,
    student_id: UUID | None,
    *,
    now: datetime.datetime | None = None,
) -> CouponQuote:
    """Validate ``code`` for ``course`` and price it.

    Runs inside the caller's transaction.  When ``student_id`` is None
    the per-student check is skipped (public pre-check).
    """
    now = now or _utcnow()
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError("Coupon code is required")

    coupon = await repos.coupons.get_for_course(normalized, course.id)
    if coupon is None:
        _reject("not_found", normalized, course.id)
        raise CouponNotFoundError("Invalid coupon code for this course")
    if coupon.is_expired(now):
        _reject("expired", normalized, course.id)
        raise CouponExpiredError("Coupon has expired")
    if coupon.is_exhausted:
        _reject("limit_reached", normalized, course.id)
        raise CouponLimitReachedError("Coupon usage limit reached")
    if student_id is not None:
        previous = await repos.enrollments.find_with_coupon(student_id, coupon.id)
        if previous is not None:
            _reject("already_used", normalized, course.id)
            raise CouponAlreadyUsedError(
                "You have already used this coupon for this course"
            )

    discount, discounted = compute_discount(
        course.price, coupon.discount_type, coupon.discount_value
    )
    COUPON_VALIDATIONS.labels(result="valid").inc()
    return CouponQuote(
        coupon=coupon,
        original_price=_money(course.price),
        discounted_price=discounted,
        discount_amount=discount,
    )


def _reject(result: str, code: str, course_id: UUID) -> None:
    COUPON_VALIDATIONS.labels(result=result).inc()
    logger.warning("Coupon rejected code=%s course=%s reason=%s", code, course_id, result)


async def _course_or_404(repos: Repos, course_id: UUID) -> Course:
    course = await repos.courses.get_by_id(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    return course


async def validate(
    store: Store, code: str, course_id: UUID, student_id: UUID
) -> CouponQuote:
    """Full enrollment-time check, including the once-per-student rule."""
    async with store.transaction() as repos:
        course = await _course_or_404(repos, course_id)
        return await quote(repos, code, course, student_id)


async def validate_for_course(store: Store, code: str, course_id: UUID) -> CouponQuote:
    """Anonymous pre-check: code, expiry and usage limit only."""
    async with store.transaction() as repos:
        course = await _course_or_404(repos, course_id)
        return await quote(repos, code, course, None)


async def list_valid_for_course(store: Store, course_id: UUID) -> list[Coupon]:
    now = _utcnow()
    async with store.transaction() as repos:
        coupons = await repos.coupons.list_by_course(course_id)
    return [c for c in coupons if c.is_valid(now)]


# ---------------------------------------------------------------------------
# Admin lifecycle
# ---------------------------------------------------------------------------


def _check_discount(discount_type: str, discount_value: Decimal) -> None:
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError("Discount type must be either percentage or flat")
    if discount_value <= 0:
        raise ValidationError("Discount value must be a positive number")
    if discount_type == "percentage" and discount_value > 100:
        raise ValidationError("Percentage discount cannot exceed 100%")


async def create_coupon(
    store: Store,
    *,
    code: str,
    discount_type: str,
    discount_value: Decimal,
    course_id: UUID,
    expiry_date: datetime.datetime | None = None,
    usage_limit: int | None = None,
) -> Coupon:
    if not normalize_code(code or ""):
        raise ValidationError("Coupon code is required")
    _check_discount(discount_type, Decimal(discount_value))
    limit = usage_limit if usage_limit is not None else 1
    if limit < 1:
        raise ValidationError("Usage limit must be at least 1")

    coupon = Coupon.new(
        code=code,
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        course_id=course_id,
        expiry_date=_as_utc(expiry_date),
        usage_limit=limit,
    )
    async with store.transaction() as repos:
        await _course_or_404(repos, course_id)
        if await repos.coupons.get_by_code(coupon.code) is not None:
            logger.warning("Rejected duplicate coupon code=%s", coupon.code)
            raise CouponCodeTakenError("Coupon code already exists")
        try:
            await repos.coupons.add(coupon)
        except ValueError:
            raise CouponCodeTakenError("Coupon code already exists") from None
    logger.info(
        "Created coupon id=%s code=%s course=%s", coupon.id, coupon.code, course_id
    )
    return coupon


async def update_coupon(
    store: Store, coupon_id: UUID, changes: Mapping[str, Any]
) -> Coupon:
    """Apply a partial update.

    Recognized keys: code, discount_type, discount_value, expiry_date,
    usage_limit.  Keys absent from ``changes`` are left alone; an explicit
    ``expiry_date: None`` removes the expiry.
    """
    async with store.transaction() as repos:
        coupon = await repos.coupons.get_by_id(coupon_id)
        if coupon is None:
            raise NotFoundError("Coupon not found")

        updates: dict[str, Any] = {}
        if changes.get("code"):
            new_code = normalize_code(changes["code"])
            if new_code != coupon.code:
                if await repos.coupons.get_by_code(new_code) is not None:
                    logger.warning("Rejected duplicate coupon code=%s", new_code)
                    raise CouponCodeTakenError("Coupon code already exists")
                updates["code"] = new_code
        if changes.get("discount_type") is not None:
            updates["discount_type"] = changes["discount_type"]
        if changes.get("discount_value") is not None:
            updates["discount_value"] = Decimal(changes["discount_value"])
        if "expiry_date" in changes:
            updates["expiry_date"] = _as_utc(changes["expiry_date"])
        if changes.get("usage_limit") is not None:
            updates["usage_limit"] = int(changes["usage_limit"])

        updated = replace(coupon, **updates)
        _check_discount(updated.discount_type, updated.discount_value)
        if updated.usage_limit < max(1, updated.used_count):
            raise ValidationError("Usage limit cannot be lower than the times used")

        try:
            saved = await repos.coupons.update(updated)
        except ValueError:
            raise CouponCodeTakenError("Coupon code already exists") from None
    if saved is None:
        raise NotFoundError("Coupon not found")
    logger.info("Updated coupon id=%s fields=%s", coupon_id, sorted(updates))
    return saved


async def delete_coupon(store: Store, coupon_id: UUID) -> None:
    async with store.transaction() as repos:
        deleted = await repos.coupons.delete(coupon_id)
    if not deleted:
        raise NotFoundError("Coupon not found")
    logger.info("Deleted coupon id=%s", coupon_id)


async def get_coupon(store: Store, coupon_id: UUID) -> Coupon:
    async with store.transaction() as repos:
        coupon = await repos.coupons.get_by_id(coupon_id)
    if coupon is None:
        raise NotFoundError("Coupon not found")
    return coupon


async def list_coupons_for_course(store: Store, course_id: UUID) -> list[Coupon]:
    async with store.transaction() as repos:
        return await repos.coupons.list_by_course(course_id)
