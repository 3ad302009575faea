"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in coursepay/models/.
Repos convert between rows and dataclasses; nothing above the repo layer
sees a row object.

Relations are plain foreign keys; set-like members (a user's enrolled
courses, an enrollment's completed lectures) are UUID arrays.
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from coursepay.db.engine import Base

_MONEY = Numeric(12, 2)


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(
        String(16), nullable=False, default="student"
    )  # student|teacher|admin
    enrolled_courses: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=[]
    )


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    price: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="pending"
    )  # pending|published|rejected
    student_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    features: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    teacher_ids: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=[]
    )
    thumbnail: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (CheckConstraint("price > 0", name="ck_courses_price_positive"),)


class LectureRow(Base):
    __tablename__ = "lectures"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)


class CouponRow(Base):
    __tablename__ = "coupons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    discount_type: Mapped[str] = mapped_column(
        String(16), nullable=False
    )  # percentage|flat
    discount_value: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True
    )
    expiry_date: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    usage_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("usage_limit >= 1", name="ck_coupons_usage_limit"),
        CheckConstraint(
            "used_count >= 0 AND used_count <= usage_limit",
            name="ck_coupons_used_count",
        ),
    )


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False
    )
    transaction_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )  # pending|completed|failed|cancelled
    amount: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    original_amount: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(_MONEY, nullable=False, default=0)
    coupon_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True
    )
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="BDT")
    payment_method: Mapped[str] = mapped_column(
        String(32), nullable=False, default="uddoktapay"
    )
    payment_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB, nullable=True
    )
    enrolled_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completion_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="in-progress"
    )  # in-progress|completed
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_lectures: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, default=[]
    )
    last_activity: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
        CheckConstraint("progress BETWEEN 0 AND 100", name="ck_enrollments_progress"),
    )
