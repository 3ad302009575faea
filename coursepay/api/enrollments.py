"""Enrollment endpoints: listings and lecture progress."""

from __future__ import annotations

import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from coursepay.api.dependencies import current_user_id, http_error, require_role
from coursepay.db.store import Store, get_store
from coursepay.models.enrollment import Enrollment
from coursepay.models.principal import Principal
from coursepay.services import enrollment_manager
from coursepay.services.errors import ServiceError

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


class EnrollmentOut(BaseModel):
    id: str
    student_id: str
    course_id: str
    transaction_id: str
    payment_status: str
    amount: float
    original_amount: float
    discount_amount: float
    coupon_id: str | None
    currency: str
    enrolled_at: datetime.datetime | None
    progress: int
    completion_status: str
    completed_lectures: list[str]
    last_activity: datetime.datetime | None


class LectureIn(BaseModel):
    lecture_id: UUID


def enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=str(e.id),
        student_id=str(e.student_id),
        course_id=str(e.course_id),
        transaction_id=e.transaction_id,
        payment_status=e.payment_status,
        amount=float(e.amount),
        original_amount=float(e.original_amount),
        discount_amount=float(e.discount_amount),
        coupon_id=str(e.coupon_id) if e.coupon_id else None,
        currency=e.currency,
        enrolled_at=e.enrolled_at,
        progress=e.progress,
        completion_status=e.completion_status,
        completed_lectures=[str(lid) for lid in e.completed_lectures],
        last_activity=e.last_activity,
    )


@router.get("/me", response_model=list[EnrollmentOut])
async def my_enrollments(
    student_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> list[EnrollmentOut]:
    enrollments = await enrollment_manager.list_for_student(store, student_id)
    return [enrollment_out(e) for e in enrollments]


@router.get("", response_model=list[EnrollmentOut])
async def all_enrollments(
    _admin: Annotated[Principal, Depends(require_role("admin"))],
    store: Annotated[Store, Depends(get_store)],
) -> list[EnrollmentOut]:
    return [enrollment_out(e) for e in await enrollment_manager.list_all(store)]


@router.get("/course/{course_id}", response_model=EnrollmentOut)
async def my_enrollment_for_course(
    course_id: UUID,
    student_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> EnrollmentOut:
    """The caller's paid enrollment in a course, or 404."""
    try:
        enrollment = await enrollment_manager.get_completed_for_course(
            store, student_id, course_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return enrollment_out(enrollment)


@router.post("/{enrollment_id}/complete-lecture", response_model=EnrollmentOut)
async def complete_lecture(
    enrollment_id: UUID,
    body: LectureIn,
    student_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> EnrollmentOut:
    try:
        enrollment = await enrollment_manager.complete_lecture(
            store, enrollment_id, body.lecture_id, student_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return enrollment_out(enrollment)


@router.post("/{enrollment_id}/incomplete-lecture", response_model=EnrollmentOut)
async def incomplete_lecture(
    enrollment_id: UUID,
    body: LectureIn,
    student_id: Annotated[UUID, Depends(current_user_id)],
    store: Annotated[Store, Depends(get_store)],
) -> EnrollmentOut:
    try:
        enrollment = await enrollment_manager.incomplete_lecture(
            store, enrollment_id, body.lecture_id, student_id
        )
    except ServiceError as e:
        raise http_error(e) from None
    return enrollment_out(enrollment)
