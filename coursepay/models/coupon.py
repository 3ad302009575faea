from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

DISCOUNT_TYPES = ("percentage", "flat")


def normalize_code(code: str) -> str:
    """Coupon codes are matched trimmed and upper-cased."""
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class Coupon:
    id: UUID
    code: str
    discount_type: str  # percentage|flat
    discount_value: Decimal
    course_id: UUID
    expiry_date: datetime.datetime | None = None
    usage_limit: int = 1
    used_count: int = 0
    created_at: datetime.datetime | None = None

    def is_expired(self, now: datetime.datetime) -> bool:
        return self.expiry_date is not None and now > self.expiry_date

    @property
    def is_exhausted(self) -> bool:
        return self.used_count >= self.usage_limit

    def is_valid(self, now: datetime.datetime) -> bool:
        return not self.is_expired(now) and not self.is_exhausted

    @staticmethod
    def new(
        *,
        code: str,
        discount_type: str,
        discount_value: Decimal,
        course_id: UUID,
        expiry_date: datetime.datetime | None = None,
        usage_limit: int = 1,
    ) -> Coupon:
        return Coupon(
            id=uuid4(),
            code=normalize_code(code),
            discount_type=discount_type,
            discount_value=discount_value,
            course_id=course_id,
            expiry_date=expiry_date,
            usage_limit=usage_limit,
            used_count=0,
            created_at=datetime.datetime.now(datetime.UTC),
        )
