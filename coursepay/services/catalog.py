"""Minimal course catalog.

Courses are authored elsewhere on the platform; this service keeps just
what checkout and progress tracking read: price, lecture list, student
count, plus the descriptive fields echoed back by the course endpoints.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from coursepay.db.store import Store
from coursepay.models.course import Course, Lecture
from coursepay.services.errors import NotFoundError, ValidationError
from coursepay.services.field_parsing import parse_list

logger = logging.getLogger(__name__)

COURSE_STATUSES = ("pending", "published", "rejected")
_TEACHING_ROLES = frozenset({"teacher", "admin"})


def _parse_price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Price must be a number") from None
    if not price.is_finite() or price <= 0:
        raise ValidationError("Price must be a positive number")
    return price


def _parse_features(value: Any) -> tuple[str, ...]:
    features = [str(f) for f in parse_list(value)]
    if any(not f.strip() for f in features):
        raise ValidationError("Features cannot contain empty values")
    return tuple(f.strip() for f in features)


def _parse_teacher_ids(value: Any) -> tuple[UUID, ...]:
    try:
        return tuple(UUID(str(t)) for t in parse_list(value))
    except ValueError:
        raise ValidationError("Teacher ids must be UUIDs") from None


async def create_course(
    store: Store,
    *,
    title: str,
    price: Any,
    features: Any = None,
    teacher_ids: Any = None,
    status: str = "pending",
    thumbnail: str | None = None,
) -> Course:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    if status not in COURSE_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(COURSE_STATUSES)}")

    course = Course.new(
        title=title.strip(),
        price=_parse_price(price),
        features=_parse_features(features),
        teacher_ids=_parse_teacher_ids(teacher_ids),
        status=status,
        thumbnail=thumbnail,
    )
    async with store.transaction() as repos:
        for teacher_id in course.teacher_ids:
            teacher = await repos.users.get_by_id(teacher_id)
            if teacher is None or teacher.role not in _TEACHING_ROLES:
                raise ValidationError("One or more selected teachers do not exist")
        await repos.courses.add(course)
    logger.info("Created course id=%s title=%s", course.id, course.title)
    return course


async def add_lecture(
    store: Store, course_id: UUID, *, title: str, video_url: str | None = None
) -> Course:
    if not title or not title.strip():
        raise ValidationError("Lecture title is required")
    lecture = Lecture.new(course_id=course_id, title=title.strip(), video_url=video_url)
    async with store.transaction() as repos:
        course = await repos.courses.add_lecture(lecture)
    if course is None:
        raise NotFoundError("Course not found")
    logger.info(
        "Added lecture id=%s to course=%s (total=%d)",
        lecture.id,
        course_id,
        course.total_lectures,
    )
    return course


async def get_course(store: Store, course_id: UUID) -> tuple[Course, list[Lecture]]:
    async with store.transaction() as repos:
        course = await repos.courses.get_by_id(course_id)
        if course is None:
            raise NotFoundError("Course not found")
        lectures = await repos.courses.list_lectures(course_id)
    return course, lectures


async def list_courses(store: Store) -> list[Course]:
    async with store.transaction() as repos:
        return await repos.courses.list_all()
