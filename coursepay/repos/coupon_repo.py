from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursepay.models.coupon import Coupon


class CouponRepo(Protocol):
    async def get_by_id(self, coupon_id: UUID) -> Coupon | None: ...
    async def get_by_code(self, code: str) -> Coupon | None: ...
    async def get_for_course(self, code: str, course_id: UUID) -> Coupon | None: ...
    async def list_by_course(self, course_id: UUID) -> list[Coupon]: ...
    async def add(self, coupon: Coupon) -> None: ...
    async def update(self, coupon: Coupon) -> Coupon | None: ...
    async def delete(self, coupon_id: UUID) -> bool: ...
    async def increment_used_count(self, coupon_id: UUID) -> bool: ...


class InMemoryCouponRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Coupon] = {}

    async def get_by_id(self, coupon_id: UUID) -> Coupon | None:
        return self._by_id.get(coupon_id)

    async def get_by_code(self, code: str) -> Coupon | None:
        return next((c for c in self._by_id.values() if c.code == code), None)

    async def get_for_course(self, code: str, course_id: UUID) -> Coupon | None:
        return next(
            (
                c
                for c in self._by_id.values()
                if c.code == code and c.course_id == course_id
            ),
            None,
        )

    async def list_by_course(self, course_id: UUID) -> list[Coupon]:
        return [c for c in self._by_id.values() if c.course_id == course_id]

    async def add(self, coupon: Coupon) -> None:
        if await self.get_by_code(coupon.code) is not None:
            raise ValueError("coupon code already exists")
        self._by_id[coupon.id] = coupon

    async def update(self, coupon: Coupon) -> Coupon | None:
        if coupon.id not in self._by_id:
            return None
        clash = await self.get_by_code(coupon.code)
        if clash is not None and clash.id != coupon.id:
            raise ValueError("coupon code already exists")
        self._by_id[coupon.id] = coupon
        return coupon

    async def delete(self, coupon_id: UUID) -> bool:
        return self._by_id.pop(coupon_id, None) is not None

    async def increment_used_count(self, coupon_id: UUID) -> bool:
        """Count one usage. Returns False when the coupon is gone or exhausted."""
        coupon = self._by_id.get(coupon_id)
        if coupon is None or coupon.used_count >= coupon.usage_limit:
            return False
        self._by_id[coupon_id] = replace(coupon, used_count=coupon.used_count + 1)
        return True

    def _snapshot(self) -> dict:
        return dict(self._by_id)

    def _restore(self, state: dict) -> None:
        self._by_id = dict(state)
