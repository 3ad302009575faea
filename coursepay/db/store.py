"""Unit-of-work store over the four repositories.

Every service operation that reads-then-writes runs inside exactly one
``store.transaction()`` block.  The block yields a ``Repos`` bundle whose
repositories all share the same transactional scope:

  - PgStore opens one AsyncSession per block and commits when the block
    exits normally, rolling back if it raises.
  - InMemoryStore serializes blocks behind an asyncio.Lock, snapshots
    every repository on entry and restores the snapshots if the block
    raises, so a failed settlement leaves no partial writes behind.

Blocks never nest.  Slow external calls (the payment gateway) happen
between blocks, never inside one, so no lock or row is held across
network I/O.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursepay.db.engine import async_session_factory
from coursepay.repos.coupon_repo import CouponRepo, InMemoryCouponRepo
from coursepay.repos.course_repo import CourseRepo, InMemoryCourseRepo
from coursepay.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from coursepay.repos.pg_coupon_repo import PgCouponRepo
from coursepay.repos.pg_course_repo import PgCourseRepo
from coursepay.repos.pg_enrollment_repo import PgEnrollmentRepo
from coursepay.repos.pg_user_repo import PgUserRepo
from coursepay.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True, slots=True)
class Repos:
    courses: CourseRepo
    coupons: CouponRepo
    enrollments: EnrollmentRepo
    users: UserRepo


class Store(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Repos]: ...


class InMemoryStore:
    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Drop all data and start over with empty repositories."""
        self._courses = InMemoryCourseRepo()
        self._coupons = InMemoryCouponRepo()
        self._enrollments = InMemoryEnrollmentRepo()
        self._users = InMemoryUserRepo()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Repos]:
        parts = (self._courses, self._coupons, self._enrollments, self._users)
        async with self._lock:
            saved = [p._snapshot() for p in parts]
            try:
                yield Repos(
                    courses=self._courses,
                    coupons=self._coupons,
                    enrollments=self._enrollments,
                    users=self._users,
                )
            except BaseException:
                for part, state in zip(parts, saved, strict=True):
                    part._restore(state)
                raise


class PgStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Repos]:
        async with self._session_factory() as session, session.begin():
            yield Repos(
                courses=PgCourseRepo(session),
                coupons=PgCouponRepo(session),
                enrollments=PgEnrollmentRepo(session),
                users=PgUserRepo(session),
            )


# ---------------------------------------------------------------------------
# Module-level singleton, same conditional pattern as the Redis consumers
# ---------------------------------------------------------------------------

if async_session_factory is not None:
    store: Store = PgStore(async_session_factory)
else:
    store = InMemoryStore()


def get_store() -> Store:
    """FastAPI dependency returning the process-wide store."""
    return store
