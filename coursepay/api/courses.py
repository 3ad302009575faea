"""Course catalog endpoints.

Reads are public.  Creating courses and adding lectures requires the
teacher or admin role.  ``features`` and ``teacher_ids`` accept a JSON
list, a JSON-encoded list string, or a comma-separated string.
"""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from coursepay.api.dependencies import http_error, require_any_role
from coursepay.db.store import Store, get_store
from coursepay.models.course import Course, Lecture
from coursepay.models.principal import Principal
from coursepay.services import catalog
from coursepay.services.errors import ServiceError

router = APIRouter(prefix="/v1/courses", tags=["courses"])

_require_author = require_any_role({"teacher", "admin"})


class CourseCreateIn(BaseModel):
    title: str
    price: Any
    features: Any = None
    teacher_ids: Any = None
    status: str = "pending"
    thumbnail: str | None = None


class LectureCreateIn(BaseModel):
    title: str
    video_url: str | None = None


class LectureOut(BaseModel):
    id: str
    title: str
    video_url: str | None


class CourseOut(BaseModel):
    id: str
    title: str
    price: float
    status: str
    student_count: int
    total_lectures: int
    features: list[str]
    teacher_ids: list[str]
    thumbnail: str | None
    lectures: list[LectureOut] | None = None


def _out(c: Course, lectures: list[Lecture] | None = None) -> CourseOut:
    return CourseOut(
        id=str(c.id),
        title=c.title,
        price=float(c.price),
        status=c.status,
        student_count=c.student_count,
        total_lectures=c.total_lectures,
        features=list(c.features),
        teacher_ids=[str(t) for t in c.teacher_ids],
        thumbnail=c.thumbnail,
        lectures=(
            [
                LectureOut(id=str(lec.id), title=lec.title, video_url=lec.video_url)
                for lec in lectures
            ]
            if lectures is not None
            else None
        ),
    )


@router.get("", response_model=list[CourseOut])
async def list_courses(
    store: Annotated[Store, Depends(get_store)],
) -> list[CourseOut]:
    return [_out(c) for c in await catalog.list_courses(store)]


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(
    course_id: UUID,
    store: Annotated[Store, Depends(get_store)],
) -> CourseOut:
    try:
        course, lectures = await catalog.get_course(store, course_id)
    except ServiceError as e:
        raise http_error(e) from None
    return _out(course, lectures)


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreateIn,
    _author: Annotated[Principal, Depends(_require_author)],
    store: Annotated[Store, Depends(get_store)],
) -> CourseOut:
    try:
        course = await catalog.create_course(
            store,
            title=body.title,
            price=body.price,
            features=body.features,
            teacher_ids=body.teacher_ids,
            status=body.status,
            thumbnail=body.thumbnail,
        )
    except ServiceError as e:
        raise http_error(e) from None
    return _out(course)


@router.post(
    "/{course_id}/lectures",
    response_model=CourseOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lecture(
    course_id: UUID,
    body: LectureCreateIn,
    _author: Annotated[Principal, Depends(_require_author)],
    store: Annotated[Store, Depends(get_store)],
) -> CourseOut:
    try:
        course = await catalog.add_lecture(
            store, course_id, title=body.title, video_url=body.video_url
        )
    except ServiceError as e:
        raise http_error(e) from None
    return _out(course)
