from __future__ import annotations

from app.commerce.promo.types import PromoRejectionReason

PROMO_REJECTION_MESSAGES: dict[PromoRejectionReason, str] = {
    PromoRejectionReason.NOT_FOUND: "This promo code does not exist.",
    PromoRejectionReason.NOT_YET_ACTIVE: "This promo code is not active yet.",
    PromoRejectionReason.EXPIRED: "This promo code has expired.",
    PromoRejectionReason.PAUSED: "This promo code is temporarily unavailable.",
    PromoRejectionReason.TOTAL_USES_EXCEEDED: "This promo code has reached its usage limit.",
    PromoRejectionReason.PER_USER_USES_EXCEEDED: "You have already used this promo code.",
    PromoRejectionReason.BELOW_MINIMUM_SUBTOTAL: "Your cart does not meet the minimum for this code.",
    PromoRejectionReason.SCOPE_MISMATCH: "This promo code does not apply to the courses in your cart.",
    PromoRejectionReason.FIRST_PURCHASE_REQUIRED: "This promo code is only valid on a first purchase.",
    PromoRejectionReason.NEW_CUSTOMER_REQUIRED: "This promo code is only valid for new customers.",
    PromoRejectionReason.USER_NOT_ALLOWED: "This promo code is not available for your account.",
    PromoRejectionReason.OUTSIDE_VALID_HOURS: "This promo code cannot be used at this time.",
}
