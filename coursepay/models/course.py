from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    price: Decimal
    status: str = "pending"  # pending|published|rejected
    student_count: int = 0
    lecture_ids: tuple[UUID, ...] = ()
    features: tuple[str, ...] = ()
    teacher_ids: tuple[UUID, ...] = ()
    thumbnail: str | None = None

    @property
    def total_lectures(self) -> int:
        return len(self.lecture_ids)

    @staticmethod
    def new(
        *,
        title: str,
        price: Decimal,
        features: tuple[str, ...] = (),
        teacher_ids: tuple[UUID, ...] = (),
        status: str = "pending",
        thumbnail: str | None = None,
    ) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            price=price,
            status=status,
            features=features,
            teacher_ids=teacher_ids,
            thumbnail=thumbnail,
        )


@dataclass(frozen=True, slots=True)
class Lecture:
    id: UUID
    course_id: UUID
    title: str
    video_url: str | None = None

    @staticmethod
    def new(*, course_id: UUID, title: str, video_url: str | None = None) -> Lecture:
        return Lecture(id=uuid4(), course_id=course_id, title=title, video_url=video_url)
