from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursepay.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def add_enrolled_course(self, user_id: UUID, course_id: UUID) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def add(self, user: User) -> None:
        if any(u.email == user.email for u in self._by_id.values()):
            raise ValueError("email already exists")
        self._by_id[user.id] = user

    async def add_enrolled_course(self, user_id: UUID, course_id: UUID) -> None:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")
        self._by_id[user_id] = replace(
            u, enrolled_courses=u.enrolled_courses | {course_id}
        )

    def _snapshot(self) -> dict:
        return dict(self._by_id)

    def _restore(self, state: dict) -> None:
        self._by_id = dict(state)
