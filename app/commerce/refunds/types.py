from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from app.commerce.money import Money


class RefundTier(str, Enum):
    FULL_REFUND = "FULL_REFUND"
    FUTURE_CREDIT_FULL = "FUTURE_CREDIT_FULL"
    FUTURE_CREDIT_PARTIAL = "FUTURE_CREDIT_PARTIAL"
    INELIGIBLE_PAST_START = "INELIGIBLE_PAST_START"


class CancellationReason(str, Enum):
    STUDENT_REQUEST = "STUDENT_REQUEST"
    PROVIDER_CANCELLED = "PROVIDER_CANCELLED"
    LATE_ARRIVAL = "LATE_ARRIVAL"
    NO_SHOW = "NO_SHOW"
    REMOVED_FOR_CAUSE = "REMOVED_FOR_CAUSE"


class DepositKind(str, Enum):
    FLAT = "FLAT"
    PERCENT = "PERCENT"


@dataclass(frozen=True, slots=True)
class DepositPolicy:
    kind: DepositKind
    flat_amount: Money | None = None
    percent: Decimal | None = None


@dataclass(frozen=True, slots=True)
class RefundDecision:
    eligible: bool
    tier: RefundTier
    days_until_class: int
    refund_amount: Money | None = None
    credit_amount: Money | None = None
    forfeited_amount: Money | None = None
    fee_covered_by_platform: bool = False
    credit_expires_on: date | None = None

    @property
    def rejects_cancellation(self) -> bool:
        return self.tier == RefundTier.INELIGIBLE_PAST_START
