from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal

from sqlalchemy import (
    BOOLEAN,
    CHAR,
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class PromoCode(Base):
    __tablename__ = "promo_codes"
    __table_args__ = (
        CheckConstraint(
            "code_type IN ('PERCENT','FIXED_AMOUNT')",
            name="ck_promo_codes_type",
        ),
        CheckConstraint(
            "scope_type IN ('GLOBAL','COURSES','CATEGORIES')",
            name="ck_promo_codes_scope_type",
        ),
        CheckConstraint(
            "status IN ('ACTIVE','SCHEDULED','PAUSED','EXPIRED')",
            name="ck_promo_codes_status",
        ),
        CheckConstraint(
            "stacking_policy IN ('EXCLUSIVE','STACKABLE')",
            name="ck_promo_codes_stacking_policy",
        ),
        CheckConstraint(
            "percent_off IS NULL OR (percent_off >= 0 AND percent_off <= 100)",
            name="ck_promo_codes_percent_off_range",
        ),
        CheckConstraint(
            "amount_off_minor IS NULL OR amount_off_minor >= 0",
            name="ck_promo_codes_amount_off_non_negative",
        ),
        CheckConstraint(
            "((code_type = 'PERCENT' AND percent_off IS NOT NULL AND amount_off_minor IS NULL) "
            "OR (code_type = 'FIXED_AMOUNT' AND amount_off_minor IS NOT NULL AND percent_off IS NULL))",
            name="ck_promo_codes_type_payload_consistency",
        ),
        CheckConstraint(
            "max_total_uses IS NULL OR max_total_uses > 0",
            name="ck_promo_codes_max_total_uses_positive",
        ),
        CheckConstraint(
            "max_uses_per_user IS NULL OR max_uses_per_user > 0",
            name="ck_promo_codes_max_uses_per_user_positive",
        ),
        CheckConstraint("current_use_count >= 0", name="ck_promo_codes_use_count_non_negative"),
        CheckConstraint(
            "max_total_uses IS NULL OR current_use_count <= max_total_uses",
            name="ck_promo_codes_use_count_le_max",
        ),
        Index("idx_promo_codes_status", "status"),
        Index("idx_promo_codes_starts_at", "starts_at"),
        Index("idx_promo_codes_ends_at", "ends_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    code_type: Mapped[str] = mapped_column(String(20), nullable=False)
    percent_off: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    amount_off_minor: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default=text("'USD'"))
    scope_type: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=text("'GLOBAL'")
    )
    scope_course_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, server_default=text("'{}'")
    )
    scope_category_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, server_default=text("'{}'")
    )
    exclusion_course_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, server_default=text("'{}'")
    )
    exclusion_category_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, server_default=text("'{}'")
    )
    min_cart_subtotal_minor: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    first_purchase_only: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    new_customers_only: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    allowed_user_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, server_default=text("'{}'")
    )
    denied_user_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, server_default=text("'{}'")
    )
    max_total_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_uses_per_user: Mapped[int | None] = mapped_column(
        Integer, nullable=True, server_default=text("1")
    )
    current_use_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_days_of_week: Mapped[str | None] = mapped_column(String(20), nullable=True)
    valid_time_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    valid_time_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    stacking_policy: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=text("'EXCLUSIVE'")
    )
    apply_to_tax: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    apply_to_shipping: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default=text("'ACTIVE'"))
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
