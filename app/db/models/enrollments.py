from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CHAR, BigInteger, CheckConstraint, DateTime, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','confirmed','completed','cancelled','on-hold','transfer-pending')",
            name="ck_enrollments_status",
        ),
        CheckConstraint(
            "cancellation_tier IS NULL OR cancellation_tier IN "
            "('FULL_REFUND','FUTURE_CREDIT_FULL','FUTURE_CREDIT_PARTIAL')",
            name="ck_enrollments_cancellation_tier",
        ),
        CheckConstraint("amount_paid_minor >= 0", name="ck_enrollments_amount_paid_non_negative"),
        CheckConstraint("deposit_amount_minor >= 0", name="ck_enrollments_deposit_non_negative"),
        CheckConstraint(
            "status <> 'transfer-pending' OR pending_schedule_id IS NOT NULL",
            name="ck_enrollments_transfer_has_target",
        ),
        Index("idx_enrollments_student", "student_id"),
        Index("idx_enrollments_schedule_status", "schedule_id", "status"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(24), nullable=False, server_default=text("'pending'"))
    schedule_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    schedule_starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    schedule_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pending_schedule_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    pending_schedule_starts_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pending_schedule_ends_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    amount_paid_minor: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    amount_due_minor: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    deposit_amount_minor: Mapped[int] = mapped_column(
        BigInteger, nullable=False, server_default=text("0")
    )
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default=text("'USD'"))
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    cancellation_tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
