from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from app.commerce.money import Money
from app.commerce.promo.rules import evaluate_promo_code
from app.commerce.promo.stacking import apply_promo_discount, no_discounts
from app.commerce.promo.types import (
    Cart,
    CartLine,
    CustomerIdentity,
    DiscountResult,
    PromoCodeRule,
    PromoCodeType,
    PromoScope,
    PromoScopeType,
    RedemptionHistory,
    StackingPolicy,
)

NOW_UTC = datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc)

ORDER = Cart(
    lines=(
        CartLine(course_id="course-a", unit_price=Money(6000)),
        CartLine(course_id="course-b", unit_price=Money(4000)),
    ),
    customer=CustomerIdentity(user_id="student-1"),
)


def discount_for(rule: PromoCodeRule, order: Cart = ORDER) -> DiscountResult:
    result = evaluate_promo_code(
        rule.code,
        order,
        RedemptionHistory(),
        promo_codes={rule.code: rule},
        now_utc=NOW_UTC,
    )
    assert isinstance(result, DiscountResult)
    return result


def percent_rule(code: str, percent: str, policy: StackingPolicy, **overrides) -> PromoCodeRule:
    return PromoCodeRule(
        code=code,
        code_type=PromoCodeType.PERCENT,
        percent_off=Decimal(percent),
        stacking_policy=policy,
        **overrides,
    )


def fixed_rule(code: str, amount_minor: int, policy: StackingPolicy, **overrides) -> PromoCodeRule:
    return PromoCodeRule(
        code=code,
        code_type=PromoCodeType.FIXED_AMOUNT,
        amount_off=Money(amount_minor),
        stacking_policy=policy,
        **overrides,
    )


def course_scope(course_id: str) -> PromoScope:
    return PromoScope(scope_type=PromoScopeType.COURSES, course_ids=frozenset({course_id}))


def test_no_discounts_keeps_cart_total() -> None:
    applied = no_discounts(ORDER)

    assert applied.discounts == ()
    assert applied.total_discount == Money(0)
    assert applied.payable_total == Money(10000)


def test_stackable_codes_add_up() -> None:
    first = discount_for(percent_rule("TEN", "10", StackingPolicy.STACKABLE))
    second = discount_for(fixed_rule("FIVE", 500, StackingPolicy.STACKABLE))

    applied = apply_promo_discount(ORDER, no_discounts(ORDER), first)
    applied = apply_promo_discount(ORDER, applied, second)

    assert [discount.code for discount in applied.discounts] == ["TEN", "FIVE"]
    assert applied.total_discount == Money(1500)
    assert applied.payable_total == Money(8500)
    assert applied.over_discount is False


def test_exclusive_code_replaces_applied_codes() -> None:
    stackable = discount_for(percent_rule("TEN", "10", StackingPolicy.STACKABLE))
    exclusive = discount_for(fixed_rule("TAKE30", 3000, StackingPolicy.EXCLUSIVE))

    applied = apply_promo_discount(ORDER, no_discounts(ORDER), stackable)
    applied = apply_promo_discount(ORDER, applied, exclusive)

    assert [discount.code for discount in applied.discounts] == ["TAKE30"]
    assert applied.total_discount == Money(3000)


def test_applied_exclusive_code_is_replaced_by_next_code() -> None:
    exclusive = discount_for(fixed_rule("TAKE30", 3000, StackingPolicy.EXCLUSIVE))
    stackable = discount_for(percent_rule("TEN", "10", StackingPolicy.STACKABLE))

    applied = apply_promo_discount(ORDER, no_discounts(ORDER), exclusive)
    applied = apply_promo_discount(ORDER, applied, stackable)

    assert [discount.code for discount in applied.discounts] == ["TEN"]
    assert applied.total_discount == Money(1000)


def test_reapplying_code_replaces_previous_evaluation() -> None:
    stackable = discount_for(percent_rule("TEN", "10", StackingPolicy.STACKABLE))

    applied = apply_promo_discount(ORDER, no_discounts(ORDER), stackable)
    applied = apply_promo_discount(ORDER, applied, stackable)

    assert len(applied.discounts) == 1
    assert applied.total_discount == Money(1000)


def test_stacked_discount_is_clamped_to_union_base() -> None:
    whole_course = discount_for(
        percent_rule("FREEA", "100", StackingPolicy.STACKABLE, scope=course_scope("course-a"))
    )
    extra = discount_for(
        fixed_rule("TAKE50", 5000, StackingPolicy.STACKABLE, scope=course_scope("course-a"))
    )

    applied = apply_promo_discount(ORDER, no_discounts(ORDER), whole_course)
    applied = apply_promo_discount(ORDER, applied, extra)

    assert applied.over_discount is True
    assert applied.total_discount == Money(6000)
    assert applied.payable_total == Money(4000)


def test_disjoint_scopes_stack_within_union_base() -> None:
    half_a = discount_for(
        percent_rule("HALFA", "50", StackingPolicy.STACKABLE, scope=course_scope("course-a"))
    )
    all_b = discount_for(
        fixed_rule("ALLB", 4000, StackingPolicy.STACKABLE, scope=course_scope("course-b"))
    )

    applied = apply_promo_discount(ORDER, no_discounts(ORDER), half_a)
    applied = apply_promo_discount(ORDER, applied, all_b)

    assert applied.over_discount is False
    assert applied.total_discount == Money(7000)
    assert applied.payable_total == Money(3000)
