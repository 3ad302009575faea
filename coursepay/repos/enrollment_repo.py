from __future__ import annotations

import datetime
from dataclasses import replace
from typing import Any, Protocol
from uuid import UUID

from coursepay.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_by_transaction_id(self, transaction_id: str) -> Enrollment | None: ...
    async def get_for_student_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...
    async def find_with_coupon(
        self, student_id: UUID, coupon_id: UUID
    ) -> Enrollment | None: ...
    async def list_by_student(self, student_id: UUID) -> list[Enrollment]: ...
    async def list_all(self) -> list[Enrollment]: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def save(self, enrollment: Enrollment) -> Enrollment: ...
    async def transition(
        self,
        transaction_id: str,
        *,
        from_status: str,
        to_status: str,
        payment_details: dict[str, Any] | None = None,
    ) -> Enrollment | None: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_by_transaction_id(self, transaction_id: str) -> Enrollment | None:
        return next(
            (e for e in self._by_id.values() if e.transaction_id == transaction_id),
            None,
        )

    async def get_for_student_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return next(
            (
                e
                for e in self._by_id.values()
                if e.student_id == student_id and e.course_id == course_id
            ),
            None,
        )

    async def find_with_coupon(
        self, student_id: UUID, coupon_id: UUID
    ) -> Enrollment | None:
        return next(
            (
                e
                for e in self._by_id.values()
                if e.student_id == student_id and e.coupon_id == coupon_id
            ),
            None,
        )

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        found = [e for e in self._by_id.values() if e.student_id == student_id]
        return sorted(found, key=_newest_first)

    async def list_all(self) -> list[Enrollment]:
        return sorted(self._by_id.values(), key=_newest_first)

    async def add(self, enrollment: Enrollment) -> None:
        self._check_unique(enrollment)
        self._by_id[enrollment.id] = enrollment

    async def save(self, enrollment: Enrollment) -> Enrollment:
        if enrollment.id not in self._by_id:
            raise KeyError("enrollment not found")
        self._check_unique(enrollment)
        self._by_id[enrollment.id] = enrollment
        return enrollment

    async def transition(
        self,
        transaction_id: str,
        *,
        from_status: str,
        to_status: str,
        payment_details: dict[str, Any] | None = None,
    ) -> Enrollment | None:
        """Move an enrollment between payment states.

        Returns the updated record, or None if no enrollment carries this
        transaction id or its status is no longer ``from_status``.
        """
        current = await self.get_by_transaction_id(transaction_id)
        if current is None or current.payment_status != from_status:
            return None
        changes: dict[str, Any] = {
            "payment_status": to_status,
            "last_activity": datetime.datetime.now(datetime.UTC),
        }
        if payment_details is not None:
            changes["payment_details"] = payment_details
        updated = replace(current, **changes)
        self._by_id[current.id] = updated
        return updated

    def _check_unique(self, enrollment: Enrollment) -> None:
        for other in self._by_id.values():
            if other.id == enrollment.id:
                continue
            if (
                other.student_id == enrollment.student_id
                and other.course_id == enrollment.course_id
            ):
                raise ValueError("student is already enrolled in this course")
            if other.transaction_id == enrollment.transaction_id:
                raise ValueError("transaction id already exists")

    def _snapshot(self) -> dict:
        return dict(self._by_id)

    def _restore(self, state: dict) -> None:
        self._by_id = dict(state)


def _newest_first(e: Enrollment) -> float:
    return -(e.enrolled_at.timestamp() if e.enrolled_at else 0.0)
