"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursepay.db.tables import CourseRow, LectureRow
from coursepay.models.course import Course, Lecture


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.id == course_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_course(row, await self._lecture_ids(course_id))

    async def list_all(self) -> list[Course]:
        rows = (await self._session.execute(select(CourseRow))).scalars().all()
        return [_row_to_course(r, await self._lecture_ids(r.id)) for r in rows]

    async def add(self, course: Course) -> None:
        row = CourseRow(
            id=course.id,
            title=course.title,
            price=course.price,
            status=course.status,
            student_count=course.student_count,
            features=list(course.features),
            teacher_ids=list(course.teacher_ids),
            thumbnail=course.thumbnail,
        )
        self._session.add(row)
        await self._session.flush()

    async def add_lecture(self, lecture: Lecture) -> Course | None:
        course_row = await self._session.get(
            CourseRow, lecture.course_id, with_for_update=True
        )
        if course_row is None:
            return None
        next_position = (
            await self._session.execute(
                select(func.coalesce(func.max(LectureRow.position), -1) + 1).where(
                    LectureRow.course_id == lecture.course_id
                )
            )
        ).scalar_one()
        self._session.add(
            LectureRow(
                id=lecture.id,
                course_id=lecture.course_id,
                position=next_position,
                title=lecture.title,
                video_url=lecture.video_url,
            )
        )
        await self._session.flush()
        return _row_to_course(course_row, await self._lecture_ids(lecture.course_id))

    async def list_lectures(self, course_id: UUID) -> list[Lecture]:
        stmt = (
            select(LectureRow)
            .where(LectureRow.course_id == course_id)
            .order_by(LectureRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Lecture(
                id=r.id, course_id=r.course_id, title=r.title, video_url=r.video_url
            )
            for r in rows
        ]

    async def increment_student_count(self, course_id: UUID) -> None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(student_count=CourseRow.student_count + 1)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("course not found")

    async def _lecture_ids(self, course_id: UUID) -> tuple[UUID, ...]:
        stmt = (
            select(LectureRow.id)
            .where(LectureRow.course_id == course_id)
            .order_by(LectureRow.position)
        )
        return tuple((await self._session.execute(stmt)).scalars().all())


def _row_to_course(row: CourseRow, lecture_ids: tuple[UUID, ...]) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        price=row.price,
        status=row.status,
        student_count=row.student_count,
        lecture_ids=lecture_ids,
        features=tuple(row.features or ()),
        teacher_ids=tuple(row.teacher_ids or ()),
        thumbnail=row.thumbnail,
    )
