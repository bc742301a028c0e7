from __future__ import annotations

from sqlalchemy import CheckConstraint, UniqueConstraint

from app.db.models import Enrollment, PromoCode, PromoRedemption  # noqa: F401
from app.db.models.base import Base


def test_commerce_tables_registered() -> None:
    assert {"promo_codes", "promo_redemptions", "enrollments"}.issubset(set(Base.metadata.tables))


def _check_names(table_name: str) -> set[str]:
    table = Base.metadata.tables[table_name]
    return {
        constraint.name for constraint in table.constraints if isinstance(constraint, CheckConstraint)
    }


def _unique_names(table_name: str) -> set[str]:
    table = Base.metadata.tables[table_name]
    return {
        constraint.name for constraint in table.constraints if isinstance(constraint, UniqueConstraint)
    }


def test_critical_constraints_present() -> None:
    promo_checks = _check_names("promo_codes")
    assert "ck_promo_codes_type_payload_consistency" in promo_checks
    assert "ck_promo_codes_use_count_le_max" in promo_checks
    assert "ck_promo_codes_percent_off_range" in promo_checks
    assert "uq_promo_codes_code" in _unique_names("promo_codes")

    redemption_checks = _check_names("promo_redemptions")
    assert "ck_promo_redemptions_final_amount" in redemption_checks
    assert "uq_promo_redemptions_idempotency_key" in _unique_names("promo_redemptions")

    enrollment_checks = _check_names("enrollments")
    assert "ck_enrollments_status" in enrollment_checks
    assert "ck_enrollments_transfer_has_target" in enrollment_checks


def test_versioned_rows_carry_version_column() -> None:
    for table_name in ("promo_codes", "enrollments"):
        column = Base.metadata.tables[table_name].c.version
        assert column.nullable is False
