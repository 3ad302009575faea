"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursepay.db.tables import UserRow
from coursepay.models.user import User


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        stmt = select(UserRow).where(UserRow.id == user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            enrolled_courses=list(user.enrolled_courses),
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError:
            raise ValueError("email already exists") from None

    async def add_enrolled_course(self, user_id: UUID, course_id: UUID) -> None:
        # Row lock so two settlements for the same student merge their sets.
        stmt = select(UserRow).where(UserRow.id == user_id).with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise KeyError("user not found")
        if course_id not in (row.enrolled_courses or []):
            row.enrolled_courses = [*(row.enrolled_courses or []), course_id]
            await self._session.flush()


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        name=row.name or "",
        email=row.email,
        role=row.role,
        enrolled_courses=frozenset(row.enrolled_courses or ()),
    )
