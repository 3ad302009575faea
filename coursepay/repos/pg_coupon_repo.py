"""PostgreSQL implementation of CouponRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursepay.db.tables import CouponRow
from coursepay.models.coupon import Coupon


class PgCouponRepo:
    """Satisfies the CouponRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, coupon_id: UUID) -> Coupon | None:
        row = await self._session.get(CouponRow, coupon_id)
        return _row_to_coupon(row) if row is not None else None

    async def get_by_code(self, code: str) -> Coupon | None:
        stmt = select(CouponRow).where(CouponRow.code == code)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_coupon(row) if row is not None else None

    async def get_for_course(self, code: str, course_id: UUID) -> Coupon | None:
        stmt = select(CouponRow).where(
            CouponRow.code == code, CouponRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_coupon(row) if row is not None else None

    async def list_by_course(self, course_id: UUID) -> list[Coupon]:
        stmt = (
            select(CouponRow)
            .where(CouponRow.course_id == course_id)
            .order_by(CouponRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_coupon(r) for r in rows]

    async def add(self, coupon: Coupon) -> None:
        row = CouponRow(
            id=coupon.id,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            course_id=coupon.course_id,
            expiry_date=coupon.expiry_date,
            usage_limit=coupon.usage_limit,
            used_count=coupon.used_count,
            created_at=coupon.created_at,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError:
            raise ValueError("coupon code already exists") from None

    async def update(self, coupon: Coupon) -> Coupon | None:
        row = await self._session.get(CouponRow, coupon.id)
        if row is None:
            return None
        row.code = coupon.code
        row.discount_type = coupon.discount_type
        row.discount_value = coupon.discount_value
        row.expiry_date = coupon.expiry_date
        row.usage_limit = coupon.usage_limit
        try:
            await self._session.flush()
        except IntegrityError:
            raise ValueError("coupon code already exists") from None
        return _row_to_coupon(row)

    async def delete(self, coupon_id: UUID) -> bool:
        result = await self._session.execute(
            delete(CouponRow).where(CouponRow.id == coupon_id)
        )
        return result.rowcount > 0

    async def increment_used_count(self, coupon_id: UUID) -> bool:
        """Count one usage. Returns False when the coupon is gone or exhausted."""
        stmt = (
            update(CouponRow)
            .where(CouponRow.id == coupon_id)
            .where(CouponRow.used_count < CouponRow.usage_limit)
            .values(used_count=CouponRow.used_count + 1)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0


def _row_to_coupon(row: CouponRow) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        discount_type=row.discount_type,
        discount_value=row.discount_value,
        course_id=row.course_id,
        expiry_date=row.expiry_date,
        usage_limit=row.usage_limit,
        used_count=row.used_count,
        created_at=row.created_at,
    )
