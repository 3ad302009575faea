"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursepay.db.tables import EnrollmentRow
from coursepay.models.enrollment import Enrollment


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        return await self._one(EnrollmentRow.id == enrollment_id)

    async def get_by_transaction_id(self, transaction_id: str) -> Enrollment | None:
        return await self._one(EnrollmentRow.transaction_id == transaction_id)

    async def get_for_student_course(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return await self._one(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )

    async def find_with_coupon(
        self, student_id: UUID, coupon_id: UUID
    ) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.coupon_id == coupon_id,
            )
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.enrolled_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_all(self) -> list[Enrollment]:
        stmt = select(EnrollmentRow).order_by(EnrollmentRow.enrolled_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def add(self, enrollment: Enrollment) -> None:
        self._session.add(EnrollmentRow(id=enrollment.id, **_columns(enrollment)))
        try:
            await self._session.flush()
        except IntegrityError:
            # uq_enrollments_student_course or the transaction_id unique index
            raise ValueError("enrollment conflicts with an existing record") from None

    async def save(self, enrollment: Enrollment) -> Enrollment:
        row = await self._session.get(EnrollmentRow, enrollment.id)
        if row is None:
            raise KeyError("enrollment not found")
        for key, value in _columns(enrollment).items():
            setattr(row, key, value)
        try:
            await self._session.flush()
        except IntegrityError:
            raise ValueError("enrollment conflicts with an existing record") from None
        return _row_to_enrollment(row)

    async def transition(
        self,
        transaction_id: str,
        *,
        from_status: str,
        to_status: str,
        payment_details: dict[str, Any] | None = None,
    ) -> Enrollment | None:
        """Move an enrollment between payment states.

        The status guard is part of the UPDATE's WHERE clause.  Two
        concurrent deliveries serialize on the row lock; the loser
        re-evaluates the guard after the winner commits and matches
        zero rows.
        """
        values: dict[str, Any] = {
            "payment_status": to_status,
            "last_activity": datetime.datetime.now(datetime.UTC),
        }
        if payment_details is not None:
            values["payment_details"] = payment_details
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.transaction_id == transaction_id)
            .where(EnrollmentRow.payment_status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self._one(
            EnrollmentRow.transaction_id == transaction_id, fresh=True
        )

    async def _one(self, *criteria: Any, fresh: bool = False) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(*criteria)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None


def _columns(e: Enrollment) -> dict[str, Any]:
    return {
        "student_id": e.student_id,
        "course_id": e.course_id,
        "transaction_id": e.transaction_id,
        "payment_status": e.payment_status,
        "amount": e.amount,
        "original_amount": e.original_amount,
        "discount_amount": e.discount_amount,
        "coupon_id": e.coupon_id,
        "currency": e.currency,
        "payment_method": e.payment_method,
        "payment_details": e.payment_details,
        "enrolled_at": e.enrolled_at,
        "completion_status": e.completion_status,
        "progress": e.progress,
        "completed_lectures": list(e.completed_lectures),
        "last_activity": e.last_activity,
    }


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        transaction_id=row.transaction_id,
        amount=row.amount,
        original_amount=row.original_amount,
        discount_amount=row.discount_amount,
        payment_status=row.payment_status,
        coupon_id=row.coupon_id,
        currency=row.currency,
        payment_method=row.payment_method,
        payment_details=row.payment_details,
        enrolled_at=row.enrolled_at,
        completion_status=row.completion_status,
        progress=row.progress,
        completed_lectures=tuple(row.completed_lectures or ()),
        last_activity=row.last_activity,
    )
