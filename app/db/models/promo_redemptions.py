from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CHAR, BigInteger, CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class PromoRedemption(Base):
    __tablename__ = "promo_redemptions"
    __table_args__ = (
        CheckConstraint(
            "redemption_source IN ('CHECKOUT','ADMIN')",
            name="ck_promo_redemptions_source",
        ),
        CheckConstraint(
            "discount_amount_minor >= 0 AND discount_amount_minor <= original_amount_minor",
            name="ck_promo_redemptions_discount_range",
        ),
        CheckConstraint(
            "final_amount_minor = original_amount_minor - discount_amount_minor",
            name="ck_promo_redemptions_final_amount",
        ),
        Index("idx_promo_redemptions_code_user", "promo_code_id", "user_id"),
        Index("idx_promo_redemptions_enrollment", "enrollment_id"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    promo_code_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("promo_codes.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    enrollment_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("enrollments.id"),
        nullable=True,
    )
    original_amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    discount_amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    final_amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default=text("'USD'"))
    redemption_source: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default=text("'CHECKOUT'")
    )
    idempotency_key: Mapped[str] = mapped_column(String(96), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
