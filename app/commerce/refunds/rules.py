from __future__ import annotations

from datetime import date, datetime

from app.commerce.money import Money
from app.commerce.refunds.constants import (
    CREDIT_VALIDITY_MONTHS,
    FULL_REFUND_MIN_DAYS_EXCLUSIVE,
    FUTURE_CREDIT_FULL_MIN_DAYS,
)
from app.commerce.refunds.types import (
    CancellationReason,
    DepositKind,
    DepositPolicy,
    RefundDecision,
    RefundTier,
)
from app.commerce.time import POLICY_TIMEZONE, add_months, calendar_days_between, policy_local_date


def resolve_deposit(policy: DepositPolicy, course_price: Money) -> Money:
    """Deposit to pin on an enrollment at registration; never above the course price."""
    if policy.kind == DepositKind.FLAT:
        deposit = policy.flat_amount or Money.zero(course_price.currency)
    else:
        deposit = course_price.multiply_by_percent(policy.percent or 0)
    return deposit.clamp_non_negative().min_of(course_price)


def classify_tier(days_until_class: int) -> RefundTier:
    if days_until_class > FULL_REFUND_MIN_DAYS_EXCLUSIVE:
        return RefundTier.FULL_REFUND
    if days_until_class >= FUTURE_CREDIT_FULL_MIN_DAYS:
        return RefundTier.FUTURE_CREDIT_FULL
    if days_until_class >= 0:
        return RefundTier.FUTURE_CREDIT_PARTIAL
    return RefundTier.INELIGIBLE_PAST_START


def credit_expiry(class_start: datetime | date, tz_name: str = POLICY_TIMEZONE) -> date:
    """Credit stays usable for twelve months counted from the original class date."""
    return add_months(policy_local_date(class_start, tz_name), CREDIT_VALIDITY_MONTHS)


def _full_refund(days_until_class: int, amount_paid: Money) -> RefundDecision:
    return RefundDecision(
        eligible=True,
        tier=RefundTier.FULL_REFUND,
        days_until_class=days_until_class,
        refund_amount=amount_paid,
        fee_covered_by_platform=True,
    )


def _partial_credit(
    days_until_class: int,
    amount_paid: Money,
    deposit_amount: Money,
    expires_on: date,
) -> RefundDecision:
    forfeited = deposit_amount.clamp_non_negative().min_of(amount_paid)
    return RefundDecision(
        eligible=False,
        tier=RefundTier.FUTURE_CREDIT_PARTIAL,
        days_until_class=days_until_class,
        credit_amount=amount_paid.subtract(deposit_amount).clamp_non_negative(),
        forfeited_amount=forfeited,
        credit_expires_on=expires_on,
    )


def decide(
    class_start: datetime | date,
    request_at: datetime | date,
    amount_paid: Money,
    deposit_amount: Money,
    *,
    reason: CancellationReason = CancellationReason.STUDENT_REQUEST,
    tz_name: str = POLICY_TIMEZONE,
) -> RefundDecision:
    """Decides what a cancellation returns to the student.

    Days are counted between calendar dates in the policy timezone, so a request made
    at any hour of a day counts that whole day. Boundaries:

    * more than 21 days: full refund, processing fee covered by the platform;
    * 14 to 21 days: the whole payment becomes future-course credit;
    * 0 to 13 days: the deposit is forfeited, the rest becomes credit;
    * after the class started: nothing. Callers must reject the cancellation.

    A class cancelled by the provider is always refunded in full. A late arrival
    forfeits the deposit like a short-notice cancellation, while no-shows and removals
    get nothing.
    """
    days_until_class = calendar_days_between(request_at, class_start, tz_name)

    if reason == CancellationReason.PROVIDER_CANCELLED:
        return _full_refund(days_until_class, amount_paid)
    if reason in {CancellationReason.NO_SHOW, CancellationReason.REMOVED_FOR_CAUSE}:
        return RefundDecision(
            eligible=False,
            tier=RefundTier.INELIGIBLE_PAST_START,
            days_until_class=days_until_class,
        )

    expires_on = credit_expiry(class_start, tz_name)
    if reason == CancellationReason.LATE_ARRIVAL:
        return _partial_credit(days_until_class, amount_paid, deposit_amount, expires_on)

    tier = classify_tier(days_until_class)
    if tier == RefundTier.FULL_REFUND:
        return _full_refund(days_until_class, amount_paid)
    if tier == RefundTier.FUTURE_CREDIT_FULL:
        return RefundDecision(
            eligible=False,
            tier=tier,
            days_until_class=days_until_class,
            credit_amount=amount_paid,
            credit_expires_on=expires_on,
        )
    if tier == RefundTier.FUTURE_CREDIT_PARTIAL:
        return _partial_credit(days_until_class, amount_paid, deposit_amount, expires_on)
    return RefundDecision(
        eligible=False,
        tier=RefundTier.INELIGIBLE_PAST_START,
        days_until_class=days_until_class,
    )
