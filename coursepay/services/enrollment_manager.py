"""Enrollment record manager.

One enrollment exists per (student, course).  It is created the first
time a student starts checkout and reused on every retry until a payment
completes; after that, new checkouts for the course are refused.

Lecture progress lives on the same record: ``progress`` is the rounded
share of the course's lectures the student has marked complete, and
``completion_status`` is "completed" exactly when progress is 100.
"""

from __future__ import annotations

import datetime
import logging
import secrets
import string
import time
from dataclasses import replace
from uuid import UUID

from coursepay.core.config import SETTINGS
from coursepay.db.store import Repos, Store
from coursepay.models.enrollment import (
    COMPLETED,
    FAILED,
    IN_PROGRESS,
    PENDING,
    Enrollment,
    compute_progress,
)
from coursepay.services import coupon_ledger
from coursepay.services.coupon_ledger import CouponQuote
from coursepay.services.errors import (
    AlreadyEnrolledError,
    ForbiddenError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def new_transaction_id() -> str:
    """``TXN_<epoch millis>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"TXN_{int(time.time() * 1000)}_{suffix}"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


async def initiate_in(
    repos: Repos,
    student_id: UUID,
    course_id: UUID,
    coupon_code: str | None = None,
) -> tuple[Enrollment, CouponQuote]:
    """Create or reset the pending enrollment for a checkout attempt.

    Runs inside the caller's transaction.
    """
    course = await repos.courses.get_by_id(course_id)
    if course is None:
        raise NotFoundError("Course not found")

    existing = await repos.enrollments.get_for_student_course(student_id, course_id)
    if existing is not None and existing.payment_status == COMPLETED:
        logger.warning(
            "Checkout refused, already enrolled student=%s course=%s",
            student_id,
            course_id,
        )
        raise AlreadyEnrolledError("You are already enrolled in this course")

    if coupon_code and coupon_code.strip():
        priced = await coupon_ledger.quote(repos, coupon_code, course, student_id)
    else:
        priced = CouponQuote.full_price(course.price)

    transaction_id = new_transaction_id()
    coupon_id = priced.coupon.id if priced.coupon else None

    if existing is not None:
        enrollment = await repos.enrollments.save(
            replace(
                existing,
                transaction_id=transaction_id,
                amount=priced.discounted_price,
                original_amount=priced.original_price,
                discount_amount=priced.discount_amount,
                coupon_id=coupon_id,
                payment_status=PENDING,
                payment_details=None,
                last_activity=_utcnow(),
            )
        )
        logger.info(
            "Reset enrollment id=%s for new checkout transaction_id=%s",
            enrollment.id,
            transaction_id,
        )
    else:
        enrollment = Enrollment.new(
            student_id=student_id,
            course_id=course_id,
            transaction_id=transaction_id,
            amount=priced.discounted_price,
            original_amount=priced.original_price,
            discount_amount=priced.discount_amount,
            coupon_id=coupon_id,
            currency=SETTINGS.currency,
        )
        await repos.enrollments.add(enrollment)
        logger.info(
            "Created enrollment id=%s transaction_id=%s",
            enrollment.id,
            transaction_id,
        )
    return enrollment, priced


async def initiate(
    store: Store,
    student_id: UUID,
    course_id: UUID,
    coupon_code: str | None = None,
) -> tuple[Enrollment, CouponQuote]:
    async with store.transaction() as repos:
        return await initiate_in(repos, student_id, course_id, coupon_code)


async def mark_failed(store: Store, transaction_id: str, message: str) -> None:
    """Record a checkout that never reached the gateway's payment page."""
    async with store.transaction() as repos:
        updated = await repos.enrollments.transition(
            transaction_id,
            from_status=PENDING,
            to_status=FAILED,
            payment_details={"error": message},
        )
    if updated is None:
        logger.warning("Could not mark transaction_id=%s failed", transaction_id)


# ---------------------------------------------------------------------------
# Lecture progress
# ---------------------------------------------------------------------------


async def _owned_enrollment(
    repos: Repos, enrollment_id: UUID, requester_id: UUID
) -> Enrollment:
    enrollment = await repos.enrollments.get_by_id(enrollment_id)
    if enrollment is None:
        raise NotFoundError("Enrollment not found")
    if enrollment.student_id != requester_id:
        logger.warning(
            "Progress update denied: enrollment=%s requester=%s",
            enrollment_id,
            requester_id,
        )
        raise ForbiddenError("Not authorized")
    return enrollment


async def _total_lectures(repos: Repos, course_id: UUID) -> int:
    course = await repos.courses.get_by_id(course_id)
    return course.total_lectures if course is not None else 0


async def complete_lecture(
    store: Store, enrollment_id: UUID, lecture_id: UUID, requester_id: UUID
) -> Enrollment:
    async with store.transaction() as repos:
        enrollment = await _owned_enrollment(repos, enrollment_id, requester_id)
        if lecture_id in enrollment.completed_lectures:
            return enrollment

        completed = enrollment.completed_lectures + (lecture_id,)
        progress = compute_progress(
            len(completed), await _total_lectures(repos, enrollment.course_id)
        )
        return await repos.enrollments.save(
            replace(
                enrollment,
                completed_lectures=completed,
                progress=progress,
                completion_status=(
                    COMPLETED if progress == 100 else enrollment.completion_status
                ),
                last_activity=_utcnow(),
            )
        )


async def incomplete_lecture(
    store: Store, enrollment_id: UUID, lecture_id: UUID, requester_id: UUID
) -> Enrollment:
    async with store.transaction() as repos:
        enrollment = await _owned_enrollment(repos, enrollment_id, requester_id)
        completed = tuple(
            lid for lid in enrollment.completed_lectures if lid != lecture_id
        )
        progress = compute_progress(
            len(completed), await _total_lectures(repos, enrollment.course_id)
        )
        return await repos.enrollments.save(
            replace(
                enrollment,
                completed_lectures=completed,
                progress=progress,
                completion_status=COMPLETED if progress == 100 else IN_PROGRESS,
                last_activity=_utcnow(),
            )
        )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_for_student(store: Store, student_id: UUID) -> list[Enrollment]:
    async with store.transaction() as repos:
        return await repos.enrollments.list_by_student(student_id)


async def list_all(store: Store) -> list[Enrollment]:
    async with store.transaction() as repos:
        return await repos.enrollments.list_all()


async def get_completed_for_course(
    store: Store, student_id: UUID, course_id: UUID
) -> Enrollment:
    async with store.transaction() as repos:
        enrollment = await repos.enrollments.get_for_student_course(
            student_id, course_id
        )
    if enrollment is None or enrollment.payment_status != COMPLETED:
        raise NotFoundError("Enrollment not found")
    return enrollment
