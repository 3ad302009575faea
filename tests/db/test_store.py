from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from coursepay.db.store import InMemoryStore
from coursepay.models.course import Course
from coursepay.models.user import User


def test_transaction_commits_on_success() -> None:
    store = InMemoryStore()
    course = Course.new(title="Intro", price=Decimal("100"))

    async def main() -> None:
        async with store.transaction() as repos:
            await repos.courses.add(course)
        async with store.transaction() as repos:
            assert await repos.courses.get_by_id(course.id) == course

    asyncio.run(main())


def test_transaction_rolls_back_every_repo_on_error() -> None:
    store = InMemoryStore()
    course = Course.new(title="Intro", price=Decimal("100"))
    user = User.new(name="Ana", email="ana@example.com")

    async def main() -> None:
        with pytest.raises(RuntimeError):
            async with store.transaction() as repos:
                await repos.courses.add(course)
                await repos.users.add(user)
                raise RuntimeError("settlement failed")

        async with store.transaction() as repos:
            assert await repos.courses.get_by_id(course.id) is None
            assert await repos.users.get_by_id(user.id) is None

    asyncio.run(main())


def test_rollback_keeps_earlier_commits() -> None:
    store = InMemoryStore()
    course = Course.new(title="Intro", price=Decimal("100"))

    async def main() -> None:
        async with store.transaction() as repos:
            await repos.courses.add(course)
        with pytest.raises(KeyError):
            async with store.transaction() as repos:
                await repos.courses.increment_student_count(course.id)
                await repos.users.add_enrolled_course(course.id, course.id)

        async with store.transaction() as repos:
            saved = await repos.courses.get_by_id(course.id)
            assert saved is not None
            assert saved.student_count == 0

    asyncio.run(main())


def test_clear_empties_the_store() -> None:
    store = InMemoryStore()
    user = User.new(name="Ana", email="ana@example.com")

    async def add() -> None:
        async with store.transaction() as repos:
            await repos.users.add(user)

    asyncio.run(add())
    store.clear()

    async def check() -> None:
        async with store.transaction() as repos:
            assert await repos.users.get_by_id(user.id) is None

    asyncio.run(check())
