from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from coursepay.db.store import store
from coursepay.services import catalog
from coursepay.services.errors import NotFoundError, ValidationError
from tests.conftest import create_test_course, create_test_user


def test_create_course_parses_fields() -> None:
    teacher = create_test_user(role="teacher")
    course = asyncio.run(
        catalog.create_course(
            store,
            title="  Data Pipelines ",
            price="1499.50",
            features="Videos, Quizzes",
            teacher_ids=f'["{teacher.id}"]',
        )
    )
    assert course.title == "Data Pipelines"
    assert course.price == Decimal("1499.50")
    assert course.features == ("Videos", "Quizzes")
    assert course.teacher_ids == (teacher.id,)
    assert course.status == "pending"
    assert course.student_count == 0


@pytest.mark.parametrize(
    ("price", "message"),
    [
        ("abc", "Price must be a number"),
        ("0", "Price must be a positive number"),
        ("-10", "Price must be a positive number"),
        ("NaN", "Price must be a positive number"),
    ],
)
def test_create_course_rejects_bad_price(price: str, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        asyncio.run(catalog.create_course(store, title="Intro", price=price))


def test_create_course_requires_title() -> None:
    with pytest.raises(ValidationError, match="Title is required"):
        asyncio.run(catalog.create_course(store, title="  ", price="10"))


def test_create_course_rejects_empty_feature() -> None:
    with pytest.raises(ValidationError, match="Features cannot contain empty values"):
        asyncio.run(
            catalog.create_course(store, title="Intro", price="10", features=["a", " "])
        )


def test_create_course_rejects_non_teacher() -> None:
    student = create_test_user()
    with pytest.raises(ValidationError, match="teachers do not exist"):
        asyncio.run(
            catalog.create_course(
                store, title="Intro", price="10", teacher_ids=[str(student.id)]
            )
        )


def test_create_course_rejects_malformed_teacher_id() -> None:
    with pytest.raises(ValidationError, match="Teacher ids must be UUIDs"):
        asyncio.run(
            catalog.create_course(store, title="Intro", price="10", teacher_ids="x1")
        )


def test_add_lecture_grows_total() -> None:
    course = create_test_course(lectures=2)
    assert course.total_lectures == 2

    _, lectures = asyncio.run(catalog.get_course(store, course.id))
    assert [lec.title for lec in lectures] == ["Lecture 1", "Lecture 2"]


def test_add_lecture_to_unknown_course() -> None:
    with pytest.raises(NotFoundError, match="Course not found"):
        asyncio.run(catalog.add_lecture(store, uuid4(), title="Intro"))


def test_add_lecture_requires_title() -> None:
    course = create_test_course()
    with pytest.raises(ValidationError, match="Lecture title is required"):
        asyncio.run(catalog.add_lecture(store, course.id, title=""))
