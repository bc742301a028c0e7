from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from app.commerce.errors import OverDiscountError
from app.commerce.money import Money, sum_money
from app.commerce.promo.codes import normalize_promo_code
from app.commerce.promo.constants import PROMO_REJECTION_MESSAGES
from app.commerce.promo.types import (
    Cart,
    CartLine,
    DiscountResult,
    PromoCodeRule,
    PromoCodeStatus,
    PromoCodeType,
    PromoRejection,
    PromoRejectionReason,
    PromoScope,
    PromoScopeType,
    RedemptionHistory,
)
from app.commerce.time import POLICY_TIMEZONE, is_within_time_window, policy_local_datetime


def effective_status(promo: PromoCodeRule, *, now_utc: datetime) -> PromoCodeStatus:
    """Derives the status used for decisions; the date window beats the persisted value."""
    if promo.starts_at is not None and now_utc < promo.starts_at:
        return PromoCodeStatus.SCHEDULED
    if promo.ends_at is not None and now_utc > promo.ends_at:
        return PromoCodeStatus.EXPIRED
    if promo.status == PromoCodeStatus.EXPIRED:
        return PromoCodeStatus.EXPIRED
    if promo.status == PromoCodeStatus.PAUSED:
        return PromoCodeStatus.PAUSED
    return PromoCodeStatus.ACTIVE


def _line_is_excluded(line: CartLine, scope: PromoScope) -> bool:
    if line.course_id in scope.excluded_course_ids:
        return True
    return bool(line.category_ids & scope.excluded_category_ids)


def _line_in_scope(line: CartLine, scope: PromoScope) -> bool:
    if _line_is_excluded(line, scope):
        return False
    if scope.scope_type == PromoScopeType.GLOBAL:
        return True
    if scope.scope_type == PromoScopeType.COURSES:
        return line.course_id in scope.course_ids
    return bool(line.category_ids & scope.category_ids)


def matching_line_indexes(cart: Cart, scope: PromoScope) -> frozenset[int]:
    return frozenset(index for index, line in enumerate(cart.lines) if _line_in_scope(line, scope))


def _user_allowed(promo: PromoCodeRule, user_id: str) -> bool:
    if user_id in promo.denied_user_ids:
        return False
    if promo.allowed_user_ids and user_id not in promo.allowed_user_ids:
        return False
    return True


def _within_valid_hours(promo: PromoCodeRule, *, now_utc: datetime, tz_name: str) -> bool:
    local_now = policy_local_datetime(now_utc, tz_name)
    if promo.valid_days_of_week and local_now.isoweekday() not in promo.valid_days_of_week:
        return False
    return is_within_time_window(
        local_now.time(),
        promo.valid_time_start,
        promo.valid_time_end,
    )


def discount_base(cart: Cart, promo: PromoCodeRule, line_indexes: frozenset[int]) -> Money:
    base = sum_money(
        [cart.lines[index].line_total for index in sorted(line_indexes)],
        currency=cart.currency,
    )
    if promo.apply_to_tax:
        base = base.add(cart.tax)
    if promo.apply_to_shipping:
        base = base.add(cart.shipping)
    return base


def compute_discount(promo: PromoCodeRule, base: Money) -> Money:
    if promo.code_type == PromoCodeType.PERCENT:
        discount = base.multiply_by_percent(promo.percent_off or 0)
    else:
        amount_off = promo.amount_off or Money.zero(base.currency)
        discount = amount_off.min_of(base)
    if discount.is_negative():
        return Money.zero(base.currency)
    return discount


def payable_after_discount(total: Money, discount: Money) -> Money:
    payable = total.subtract(discount)
    if payable.is_negative():
        raise OverDiscountError(f"discount {discount} exceeds payable total {total}")
    return payable


def _reject(code: str, reason: PromoRejectionReason) -> PromoRejection:
    return PromoRejection(code=code, reason=reason, message=PROMO_REJECTION_MESSAGES[reason])


def evaluate_promo_code(
    raw_code: str,
    cart: Cart,
    redemption_history: RedemptionHistory,
    *,
    promo_codes: Mapping[str, PromoCodeRule],
    now_utc: datetime,
    tz_name: str = POLICY_TIMEZONE,
) -> DiscountResult | PromoRejection:
    """Decides the discount a code grants on ``cart`` or the first rule it fails.

    Checks run in a fixed order so the reported reason is deterministic. Nothing is
    mutated here; use counts only move at checkout.
    """
    code = normalize_promo_code(raw_code)
    promo = promo_codes.get(code) if code else None
    if promo is None:
        return _reject(code, PromoRejectionReason.NOT_FOUND)

    status = effective_status(promo, now_utc=now_utc)
    if status == PromoCodeStatus.SCHEDULED:
        return _reject(code, PromoRejectionReason.NOT_YET_ACTIVE)
    if status == PromoCodeStatus.EXPIRED:
        return _reject(code, PromoRejectionReason.EXPIRED)
    if status == PromoCodeStatus.PAUSED:
        return _reject(code, PromoRejectionReason.PAUSED)

    if promo.max_total_uses is not None and promo.current_use_count >= promo.max_total_uses:
        return _reject(code, PromoRejectionReason.TOTAL_USES_EXCEEDED)

    user_id = cart.customer.user_id
    if (
        promo.max_uses_per_user is not None
        and redemption_history.uses_for(user_id) >= promo.max_uses_per_user
    ):
        return _reject(code, PromoRejectionReason.PER_USER_USES_EXCEEDED)

    if promo.min_cart_subtotal is not None and cart.subtotal < promo.min_cart_subtotal:
        return _reject(code, PromoRejectionReason.BELOW_MINIMUM_SUBTOTAL)

    line_indexes = matching_line_indexes(cart, promo.scope)
    if not line_indexes:
        return _reject(code, PromoRejectionReason.SCOPE_MISMATCH)

    if promo.first_purchase_only and not cart.customer.is_first_purchase:
        return _reject(code, PromoRejectionReason.FIRST_PURCHASE_REQUIRED)
    if promo.new_customers_only and not cart.customer.new_customer:
        return _reject(code, PromoRejectionReason.NEW_CUSTOMER_REQUIRED)

    if not _user_allowed(promo, user_id):
        return _reject(code, PromoRejectionReason.USER_NOT_ALLOWED)
    if not _within_valid_hours(promo, now_utc=now_utc, tz_name=tz_name):
        return _reject(code, PromoRejectionReason.OUTSIDE_VALID_HOURS)

    base = discount_base(cart, promo, line_indexes)
    discount = compute_discount(promo, base)
    return DiscountResult(
        code=code,
        code_type=promo.code_type,
        stacking_policy=promo.stacking_policy,
        discount=discount,
        base=base,
        payable_total=payable_after_discount(cart.total, discount),
        matched_line_indexes=line_indexes,
        includes_tax=promo.apply_to_tax,
        includes_shipping=promo.apply_to_shipping,
        promo_code_id=promo.promo_code_id,
    )
