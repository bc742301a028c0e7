from __future__ import annotations

from app.commerce.money import Money, sum_money
from app.commerce.promo.types import AppliedDiscounts, Cart, DiscountResult, StackingPolicy


def no_discounts(cart: Cart) -> AppliedDiscounts:
    return AppliedDiscounts(
        discounts=(),
        total_discount=Money.zero(cart.currency),
        payable_total=cart.total,
    )


def _union_base(cart: Cart, discounts: tuple[DiscountResult, ...]) -> Money:
    line_indexes: set[int] = set()
    includes_tax = False
    includes_shipping = False
    for discount in discounts:
        line_indexes.update(discount.matched_line_indexes)
        includes_tax = includes_tax or discount.includes_tax
        includes_shipping = includes_shipping or discount.includes_shipping

    base = sum_money(
        [cart.lines[index].line_total for index in sorted(line_indexes)],
        currency=cart.currency,
    )
    if includes_tax:
        base = base.add(cart.tax)
    if includes_shipping:
        base = base.add(cart.shipping)
    return base


def apply_promo_discount(
    cart: Cart,
    applied: AppliedDiscounts,
    new_discount: DiscountResult,
) -> AppliedDiscounts:
    """Combines a freshly evaluated code with the ones already on the cart.

    An exclusive code on either side replaces everything applied so far. Stackable
    codes add up, clamped to the union of what the individual codes may discount.
    """
    kept = tuple(discount for discount in applied.discounts if discount.code != new_discount.code)
    if new_discount.stacking_policy == StackingPolicy.EXCLUSIVE or any(
        discount.stacking_policy == StackingPolicy.EXCLUSIVE for discount in kept
    ):
        kept = ()
    discounts = (*kept, new_discount)

    combined = sum_money([discount.discount for discount in discounts], currency=cart.currency)
    base = _union_base(cart, discounts)
    over_discount = combined > base
    total_discount = combined.min_of(base)
    return AppliedDiscounts(
        discounts=discounts,
        total_discount=total_discount,
        payable_total=cart.total.subtract(total_discount).clamp_non_negative(),
        over_discount=over_discount,
    )
