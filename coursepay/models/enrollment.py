from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID, uuid4

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

PAYMENT_STATUSES = (PENDING, COMPLETED, FAILED, CANCELLED)
TERMINAL_STATUSES = frozenset({COMPLETED, FAILED, CANCELLED})

IN_PROGRESS = "in-progress"


def compute_progress(completed: int, total: int) -> int:
    """Percentage of lectures completed, rounded and clamped to [0, 100].

    A course without lectures has no measurable progress and reports 0.
    """
    if total <= 0:
        return 0
    percent = int(
        (Decimal(completed) * 100 / Decimal(total)).to_integral_value(
            rounding=ROUND_HALF_UP
        )
    )
    return min(100, max(0, percent))


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Per-student, per-course record of payment and learning progress."""

    id: UUID
    student_id: UUID
    course_id: UUID
    transaction_id: str
    amount: Decimal
    original_amount: Decimal
    discount_amount: Decimal = Decimal("0")
    payment_status: str = PENDING  # pending|completed|failed|cancelled
    coupon_id: UUID | None = None
    currency: str = "BDT"
    payment_method: str = "uddoktapay"
    payment_details: dict[str, Any] | None = None
    enrolled_at: datetime.datetime | None = None
    completion_status: str = IN_PROGRESS  # in-progress|completed
    progress: int = 0
    completed_lectures: tuple[UUID, ...] = ()
    last_activity: datetime.datetime | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == COMPLETED

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        transaction_id: str,
        amount: Decimal,
        original_amount: Decimal,
        discount_amount: Decimal = Decimal("0"),
        coupon_id: UUID | None = None,
        currency: str = "BDT",
    ) -> Enrollment:
        now = datetime.datetime.now(datetime.UTC)
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            transaction_id=transaction_id,
            amount=amount,
            original_amount=original_amount,
            discount_amount=discount_amount,
            coupon_id=coupon_id,
            currency=currency,
            enrolled_at=now,
            last_activity=now,
        )
