from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

from app.commerce.concurrency import VersionedCounter
from app.commerce.money import DEFAULT_CURRENCY, Money, sum_money


class PromoCodeType(str, Enum):
    PERCENT = "PERCENT"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class PromoScopeType(str, Enum):
    GLOBAL = "GLOBAL"
    COURSES = "COURSES"
    CATEGORIES = "CATEGORIES"


class PromoCodeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SCHEDULED = "SCHEDULED"
    PAUSED = "PAUSED"
    EXPIRED = "EXPIRED"


class StackingPolicy(str, Enum):
    EXCLUSIVE = "EXCLUSIVE"
    STACKABLE = "STACKABLE"


class PromoRejectionReason(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    NOT_YET_ACTIVE = "NOT_YET_ACTIVE"
    EXPIRED = "EXPIRED"
    PAUSED = "PAUSED"
    TOTAL_USES_EXCEEDED = "TOTAL_USES_EXCEEDED"
    PER_USER_USES_EXCEEDED = "PER_USER_USES_EXCEEDED"
    BELOW_MINIMUM_SUBTOTAL = "BELOW_MINIMUM_SUBTOTAL"
    SCOPE_MISMATCH = "SCOPE_MISMATCH"
    FIRST_PURCHASE_REQUIRED = "FIRST_PURCHASE_REQUIRED"
    NEW_CUSTOMER_REQUIRED = "NEW_CUSTOMER_REQUIRED"
    USER_NOT_ALLOWED = "USER_NOT_ALLOWED"
    OUTSIDE_VALID_HOURS = "OUTSIDE_VALID_HOURS"


@dataclass(frozen=True, slots=True)
class PromoScope:
    scope_type: PromoScopeType = PromoScopeType.GLOBAL
    course_ids: frozenset[str] = frozenset()
    category_ids: frozenset[str] = frozenset()
    excluded_course_ids: frozenset[str] = frozenset()
    excluded_category_ids: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class PromoCodeRule:
    """Read-only view of a promo code as the evaluator needs it."""

    code: str
    code_type: PromoCodeType
    percent_off: Decimal | None = None
    amount_off: Money | None = None
    scope: PromoScope = field(default_factory=PromoScope)
    status: PromoCodeStatus = PromoCodeStatus.ACTIVE
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    max_total_uses: int | None = None
    max_uses_per_user: int | None = None
    use_counter: VersionedCounter = field(default_factory=VersionedCounter)
    min_cart_subtotal: Money | None = None
    stacking_policy: StackingPolicy = StackingPolicy.EXCLUSIVE
    apply_to_tax: bool = False
    apply_to_shipping: bool = False
    first_purchase_only: bool = False
    new_customers_only: bool = False
    allowed_user_ids: frozenset[str] = frozenset()
    denied_user_ids: frozenset[str] = frozenset()
    valid_days_of_week: frozenset[int] = frozenset()
    valid_time_start: time | None = None
    valid_time_end: time | None = None
    promo_code_id: int | None = None

    @property
    def current_use_count(self) -> int:
        return self.use_counter.count


@dataclass(frozen=True, slots=True)
class CartLine:
    course_id: str
    unit_price: Money
    quantity: int = 1
    category_ids: frozenset[str] = frozenset()

    @property
    def line_total(self) -> Money:
        return self.unit_price.multiply(self.quantity)


@dataclass(frozen=True, slots=True)
class CustomerIdentity:
    user_id: str
    is_first_purchase: bool = False
    is_new_customer: bool | None = None

    @property
    def new_customer(self) -> bool:
        if self.is_new_customer is None:
            return self.is_first_purchase
        return self.is_new_customer


@dataclass(frozen=True, slots=True)
class Cart:
    lines: tuple[CartLine, ...]
    customer: CustomerIdentity
    tax: Money = field(default_factory=Money.zero)
    shipping: Money = field(default_factory=Money.zero)
    currency: str = DEFAULT_CURRENCY

    @property
    def subtotal(self) -> Money:
        return sum_money([line.line_total for line in self.lines], currency=self.currency)

    @property
    def total(self) -> Money:
        return self.subtotal.add(self.tax).add(self.shipping)


@dataclass(frozen=True, slots=True)
class RedemptionHistory:
    uses_by_user: Mapping[str, int] = field(default_factory=dict)

    def uses_for(self, user_id: str) -> int:
        return self.uses_by_user.get(user_id, 0)


@dataclass(frozen=True, slots=True)
class DiscountResult:
    code: str
    code_type: PromoCodeType
    stacking_policy: StackingPolicy
    discount: Money
    base: Money
    payable_total: Money
    matched_line_indexes: frozenset[int]
    includes_tax: bool
    includes_shipping: bool
    promo_code_id: int | None = None


@dataclass(frozen=True, slots=True)
class PromoRejection:
    code: str
    reason: PromoRejectionReason
    message: str


@dataclass(frozen=True, slots=True)
class AppliedDiscounts:
    discounts: tuple[DiscountResult, ...]
    total_discount: Money
    payable_total: Money
    over_discount: bool = False


@dataclass(frozen=True, slots=True)
class PromoRedemptionResult:
    redemption_id: UUID
    code: str
    original_amount: Money
    discount: Money
    final_amount: Money
    idempotent_replay: bool
