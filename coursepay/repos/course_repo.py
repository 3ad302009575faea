from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursepay.models.course import Course, Lecture


class CourseRepo(Protocol):
    async def get_by_id(self, course_id: UUID) -> Course | None: ...
    async def list_all(self) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...
    async def add_lecture(self, lecture: Lecture) -> Course | None: ...
    async def list_lectures(self, course_id: UUID) -> list[Lecture]: ...
    async def increment_student_count(self, course_id: UUID) -> None: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}
        self._lectures: dict[UUID, Lecture] = {}

    async def get_by_id(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def list_all(self) -> list[Course]:
        return list(self._by_id.values())

    async def add(self, course: Course) -> None:
        if course.id in self._by_id:
            raise ValueError("course already exists")
        self._by_id[course.id] = course

    async def add_lecture(self, lecture: Lecture) -> Course | None:
        course = self._by_id.get(lecture.course_id)
        if course is None:
            return None
        self._lectures[lecture.id] = lecture
        updated = replace(course, lecture_ids=course.lecture_ids + (lecture.id,))
        self._by_id[course.id] = updated
        return updated

    async def list_lectures(self, course_id: UUID) -> list[Lecture]:
        course = self._by_id.get(course_id)
        if course is None:
            return []
        return [self._lectures[lid] for lid in course.lecture_ids]

    async def increment_student_count(self, course_id: UUID) -> None:
        course = self._by_id.get(course_id)
        if course is None:
            raise KeyError("course not found")
        self._by_id[course_id] = replace(course, student_count=course.student_count + 1)

    def _snapshot(self) -> tuple[dict, dict]:
        return dict(self._by_id), dict(self._lectures)

    def _restore(self, state: tuple[dict, dict]) -> None:
        self._by_id, self._lectures = dict(state[0]), dict(state[1])
