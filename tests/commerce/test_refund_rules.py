from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.commerce.money import Money
from app.commerce.refunds.rules import classify_tier, credit_expiry, decide, resolve_deposit
from app.commerce.refunds.types import (
    CancellationReason,
    DepositKind,
    DepositPolicy,
    RefundTier,
)

UTC = timezone.utc
# 09:00 on 2026-06-15 in America/Denver (MDT, UTC-6).
CLASS_START = datetime(2026, 6, 15, 15, 0, tzinfo=UTC)
PAID = Money(50000)
DEPOSIT = Money(15000)


def decide_days_before(days: int, **kwargs):
    return decide(CLASS_START, CLASS_START - timedelta(days=days), PAID, DEPOSIT, **kwargs)


@pytest.mark.parametrize(
    ("days", "tier"),
    [
        (22, RefundTier.FULL_REFUND),
        (21, RefundTier.FUTURE_CREDIT_FULL),
        (20, RefundTier.FUTURE_CREDIT_FULL),
        (14, RefundTier.FUTURE_CREDIT_FULL),
        (13, RefundTier.FUTURE_CREDIT_PARTIAL),
        (0, RefundTier.FUTURE_CREDIT_PARTIAL),
        (-1, RefundTier.INELIGIBLE_PAST_START),
    ],
)
def test_tier_boundaries(days: int, tier: RefundTier) -> None:
    decision = decide_days_before(days)

    assert decision.days_until_class == days
    assert decision.tier == tier
    assert classify_tier(days) == tier


def test_full_refund_scenario() -> None:
    decision = decide_days_before(25)

    assert decision.eligible is True
    assert decision.tier == RefundTier.FULL_REFUND
    assert decision.refund_amount == Money(50000)
    assert decision.credit_amount is None
    assert decision.fee_covered_by_platform is True


def test_full_credit_keeps_whole_payment() -> None:
    decision = decide_days_before(16)

    assert decision.eligible is False
    assert decision.refund_amount is None
    assert decision.credit_amount == Money(50000)
    assert decision.credit_expires_on == date(2027, 6, 15)


def test_partial_credit_scenario_forfeits_deposit() -> None:
    decision = decide_days_before(10)

    assert decision.eligible is False
    assert decision.tier == RefundTier.FUTURE_CREDIT_PARTIAL
    assert decision.credit_amount == Money(35000)
    assert decision.forfeited_amount == Money(15000)
    assert decision.refund_amount is None


def test_partial_credit_never_goes_negative() -> None:
    decision = decide(CLASS_START, CLASS_START - timedelta(days=3), Money(10000), DEPOSIT)

    assert decision.credit_amount == Money(0)
    assert decision.forfeited_amount == Money(10000)


def test_past_start_produces_no_amounts() -> None:
    decision = decide_days_before(-2)

    assert decision.tier == RefundTier.INELIGIBLE_PAST_START
    assert decision.eligible is False
    assert decision.rejects_cancellation is True
    assert decision.refund_amount is None
    assert decision.credit_amount is None
    assert decision.forfeited_amount is None


def test_days_are_counted_in_policy_calendar_not_utc() -> None:
    # 23:30 MDT on 2026-05-24 is already 2026-05-25 in UTC.
    late_evening = datetime(2026, 5, 25, 5, 30, tzinfo=UTC)
    just_after_midnight = datetime(2026, 5, 25, 6, 10, tzinfo=UTC)

    assert decide(CLASS_START, late_evening, PAID, DEPOSIT).tier == RefundTier.FULL_REFUND
    assert decide(CLASS_START, just_after_midnight, PAID, DEPOSIT).tier == (
        RefundTier.FUTURE_CREDIT_FULL
    )


def test_same_day_request_after_start_time_is_still_day_zero() -> None:
    decision = decide(CLASS_START, CLASS_START + timedelta(hours=3), PAID, DEPOSIT)

    assert decision.days_until_class == 0
    assert decision.tier == RefundTier.FUTURE_CREDIT_PARTIAL


def test_refund_and_credit_are_mutually_exclusive() -> None:
    for days in range(-3, 31):
        decision = decide_days_before(days)
        assert decision.refund_amount is None or decision.credit_amount is None


def test_credit_expiry_clamps_leap_day() -> None:
    assert credit_expiry(date(2028, 2, 29)) == date(2029, 2, 28)
    assert credit_expiry(datetime(2026, 1, 31, 5, 0, tzinfo=UTC)) == date(2027, 1, 30)


def test_provider_cancellation_refunds_in_full_even_after_start() -> None:
    decision = decide_days_before(-3, reason=CancellationReason.PROVIDER_CANCELLED)

    assert decision.eligible is True
    assert decision.tier == RefundTier.FULL_REFUND
    assert decision.refund_amount == PAID
    assert decision.fee_covered_by_platform is True


def test_late_arrival_forfeits_deposit() -> None:
    decision = decide_days_before(0, reason=CancellationReason.LATE_ARRIVAL)

    assert decision.tier == RefundTier.FUTURE_CREDIT_PARTIAL
    assert decision.credit_amount == Money(35000)
    assert decision.forfeited_amount == DEPOSIT


@pytest.mark.parametrize(
    "reason",
    [CancellationReason.NO_SHOW, CancellationReason.REMOVED_FOR_CAUSE],
)
def test_no_show_and_removal_get_nothing(reason: CancellationReason) -> None:
    decision = decide_days_before(30, reason=reason)

    assert decision.rejects_cancellation is True
    assert decision.refund_amount is None
    assert decision.credit_amount is None


@pytest.mark.parametrize(
    ("policy", "expected_minor"),
    [
        (DepositPolicy(kind=DepositKind.FLAT, flat_amount=Money(15000)), 15000),
        (DepositPolicy(kind=DepositKind.FLAT, flat_amount=Money(60000)), 50000),
        (DepositPolicy(kind=DepositKind.FLAT), 0),
        (DepositPolicy(kind=DepositKind.PERCENT, percent=Decimal("30")), 15000),
        (DepositPolicy(kind=DepositKind.PERCENT, percent=Decimal("12.5")), 6250),
    ],
)
def test_resolve_deposit_never_exceeds_price(policy: DepositPolicy, expected_minor: int) -> None:
    assert resolve_deposit(policy, Money(50000)) == Money(expected_minor)
