"""commerce_policy_core

Revision ID: 3c1e7a9d5b20
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3c1e7a9d5b20"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _id_array() -> postgresql.ARRAY:
    return postgresql.ARRAY(sa.String(64))


def upgrade() -> None:
    op.create_table(
        "promo_codes",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("code_type", sa.String(20), nullable=False),
        sa.Column("percent_off", sa.Numeric(5, 2), nullable=True),
        sa.Column("amount_off_minor", sa.BigInteger(), nullable=True),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("scope_type", sa.String(20), nullable=False, server_default=sa.text("'GLOBAL'")),
        sa.Column("scope_course_ids", _id_array(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("scope_category_ids", _id_array(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("exclusion_course_ids", _id_array(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column(
            "exclusion_category_ids", _id_array(), nullable=False, server_default=sa.text("'{}'")
        ),
        sa.Column("min_cart_subtotal_minor", sa.BigInteger(), nullable=True),
        sa.Column("first_purchase_only", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("new_customers_only", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("allowed_user_ids", _id_array(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("denied_user_ids", _id_array(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("max_total_uses", sa.Integer(), nullable=True),
        sa.Column("max_uses_per_user", sa.Integer(), nullable=True, server_default=sa.text("1")),
        sa.Column("current_use_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_days_of_week", sa.String(20), nullable=True),
        sa.Column("valid_time_start", sa.Time(), nullable=True),
        sa.Column("valid_time_end", sa.Time(), nullable=True),
        sa.Column(
            "stacking_policy", sa.String(20), nullable=False, server_default=sa.text("'EXCLUSIVE'")
        ),
        sa.Column("apply_to_tax", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("apply_to_shipping", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("code_type IN ('PERCENT','FIXED_AMOUNT')", name="ck_promo_codes_type"),
        sa.CheckConstraint(
            "scope_type IN ('GLOBAL','COURSES','CATEGORIES')", name="ck_promo_codes_scope_type"
        ),
        sa.CheckConstraint(
            "status IN ('ACTIVE','SCHEDULED','PAUSED','EXPIRED')", name="ck_promo_codes_status"
        ),
        sa.CheckConstraint(
            "stacking_policy IN ('EXCLUSIVE','STACKABLE')", name="ck_promo_codes_stacking_policy"
        ),
        sa.CheckConstraint(
            "percent_off IS NULL OR (percent_off >= 0 AND percent_off <= 100)",
            name="ck_promo_codes_percent_off_range",
        ),
        sa.CheckConstraint(
            "amount_off_minor IS NULL OR amount_off_minor >= 0",
            name="ck_promo_codes_amount_off_non_negative",
        ),
        sa.CheckConstraint(
            "((code_type = 'PERCENT' AND percent_off IS NOT NULL AND amount_off_minor IS NULL) "
            "OR (code_type = 'FIXED_AMOUNT' AND amount_off_minor IS NOT NULL AND percent_off IS NULL))",
            name="ck_promo_codes_type_payload_consistency",
        ),
        sa.CheckConstraint(
            "max_total_uses IS NULL OR max_total_uses > 0",
            name="ck_promo_codes_max_total_uses_positive",
        ),
        sa.CheckConstraint(
            "max_uses_per_user IS NULL OR max_uses_per_user > 0",
            name="ck_promo_codes_max_uses_per_user_positive",
        ),
        sa.CheckConstraint("current_use_count >= 0", name="ck_promo_codes_use_count_non_negative"),
        sa.CheckConstraint(
            "max_total_uses IS NULL OR current_use_count <= max_total_uses",
            name="ck_promo_codes_use_count_le_max",
        ),
        sa.UniqueConstraint("code", name="uq_promo_codes_code"),
    )
    op.create_index("idx_promo_codes_status", "promo_codes", ["status"])
    op.create_index("idx_promo_codes_starts_at", "promo_codes", ["starts_at"])
    op.create_index("idx_promo_codes_ends_at", "promo_codes", ["ends_at"])

    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("course_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(24), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("schedule_id", sa.String(64), nullable=True),
        sa.Column("schedule_starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("schedule_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pending_schedule_id", sa.String(64), nullable=True),
        sa.Column("pending_schedule_starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pending_schedule_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("amount_paid_minor", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("amount_due_minor", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("deposit_amount_minor", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("payment_reference", sa.String(128), nullable=True),
        sa.Column("cancellation_tier", sa.String(32), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','confirmed','completed','cancelled','on-hold','transfer-pending')",
            name="ck_enrollments_status",
        ),
        sa.CheckConstraint(
            "cancellation_tier IS NULL OR cancellation_tier IN "
            "('FULL_REFUND','FUTURE_CREDIT_FULL','FUTURE_CREDIT_PARTIAL')",
            name="ck_enrollments_cancellation_tier",
        ),
        sa.CheckConstraint("amount_paid_minor >= 0", name="ck_enrollments_amount_paid_non_negative"),
        sa.CheckConstraint("deposit_amount_minor >= 0", name="ck_enrollments_deposit_non_negative"),
        sa.CheckConstraint(
            "status <> 'transfer-pending' OR pending_schedule_id IS NOT NULL",
            name="ck_enrollments_transfer_has_target",
        ),
    )
    op.create_index("idx_enrollments_student", "enrollments", ["student_id"])
    op.create_index("idx_enrollments_schedule_status", "enrollments", ["schedule_id", "status"])

    op.create_table(
        "promo_redemptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("promo_code_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("original_amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("discount_amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("final_amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column(
            "redemption_source", sa.String(32), nullable=False, server_default=sa.text("'CHECKOUT'")
        ),
        sa.Column("idempotency_key", sa.String(96), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "redemption_source IN ('CHECKOUT','ADMIN')", name="ck_promo_redemptions_source"
        ),
        sa.CheckConstraint(
            "discount_amount_minor >= 0 AND discount_amount_minor <= original_amount_minor",
            name="ck_promo_redemptions_discount_range",
        ),
        sa.CheckConstraint(
            "final_amount_minor = original_amount_minor - discount_amount_minor",
            name="ck_promo_redemptions_final_amount",
        ),
        sa.ForeignKeyConstraint(["promo_code_id"], ["promo_codes.id"]),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"]),
        sa.UniqueConstraint("idempotency_key", name="uq_promo_redemptions_idempotency_key"),
    )
    op.create_index(
        "idx_promo_redemptions_code_user", "promo_redemptions", ["promo_code_id", "user_id"]
    )
    op.create_index("idx_promo_redemptions_enrollment", "promo_redemptions", ["enrollment_id"])


def downgrade() -> None:
    op.drop_index("idx_promo_redemptions_enrollment", table_name="promo_redemptions")
    op.drop_index("idx_promo_redemptions_code_user", table_name="promo_redemptions")
    op.drop_table("promo_redemptions")

    op.drop_index("idx_enrollments_schedule_status", table_name="enrollments")
    op.drop_index("idx_enrollments_student", table_name="enrollments")
    op.drop_table("enrollments")

    op.drop_index("idx_promo_codes_ends_at", table_name="promo_codes")
    op.drop_index("idx_promo_codes_starts_at", table_name="promo_codes")
    op.drop_index("idx_promo_codes_status", table_name="promo_codes")
    op.drop_table("promo_codes")
