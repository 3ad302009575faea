"""initial schema: users, courses, lectures, coupons, enrollments

Revision ID: 3b9d0c1e7a42
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9d0c1e7a42"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID = postgresql.UUID(as_uuid=True)
_MONEY = sa.Numeric(12, 2)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column(
            "role", sa.String(length=16), nullable=False, server_default="student"
        ),
        sa.Column(
            "enrolled_courses",
            postgresql.ARRAY(_UUID),
            nullable=False,
            server_default="{}",
        ),
    )

    op.create_table(
        "courses",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("price", _MONEY, nullable=False),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="pending"
        ),
        sa.Column("student_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "features", postgresql.ARRAY(sa.String()), nullable=False, server_default="{}"
        ),
        sa.Column(
            "teacher_ids", postgresql.ARRAY(_UUID), nullable=False, server_default="{}"
        ),
        sa.Column("thumbnail", sa.Text(), nullable=True),
        sa.CheckConstraint("price > 0", name="ck_courses_price_positive"),
    )

    op.create_table(
        "lectures",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("video_url", sa.Text(), nullable=True),
    )
    op.create_index("ix_lectures_course_id", "lectures", ["course_id"])

    op.create_table(
        "coupons",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("discount_type", sa.String(length=16), nullable=False),
        sa.Column("discount_value", _MONEY, nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("usage_limit >= 1", name="ck_coupons_usage_limit"),
        sa.CheckConstraint(
            "used_count >= 0 AND used_count <= usage_limit",
            name="ck_coupons_used_count",
        ),
    )
    op.create_index("ix_coupons_course_id", "coupons", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", _UUID, primary_key=True),
        sa.Column("student_id", _UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", _UUID, sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("transaction_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column(
            "payment_status",
            sa.String(length=16),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("amount", _MONEY, nullable=False),
        sa.Column("original_amount", _MONEY, nullable=False),
        sa.Column("discount_amount", _MONEY, nullable=False, server_default="0"),
        sa.Column(
            "coupon_id",
            _UUID,
            sa.ForeignKey("coupons.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("currency", sa.String(length=8), nullable=False, server_default="BDT"),
        sa.Column(
            "payment_method",
            sa.String(length=32),
            nullable=False,
            server_default="uddoktapay",
        ),
        sa.Column("payment_details", postgresql.JSONB(), nullable=True),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "completion_status",
            sa.String(length=16),
            nullable=False,
            server_default="in-progress",
        ),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "completed_lectures",
            postgresql.ARRAY(_UUID),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "student_id", "course_id", name="uq_enrollments_student_course"
        ),
        sa.CheckConstraint(
            "progress BETWEEN 0 AND 100", name="ck_enrollments_progress"
        ),
    )
    op.create_index(
        "ix_enrollments_last_activity", "enrollments", ["last_activity"]
    )


def downgrade() -> None:
    op.drop_index("ix_enrollments_last_activity", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_index("ix_coupons_course_id", table_name="coupons")
    op.drop_table("coupons")
    op.drop_index("ix_lectures_course_id", table_name="lectures")
    op.drop_table("lectures")
    op.drop_table("courses")
    op.drop_table("users")
