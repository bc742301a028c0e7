from app.commerce.refunds.rules import decide, resolve_deposit
from app.commerce.refunds.types import CancellationReason, RefundDecision, RefundTier

__all__ = [
    "CancellationReason",
    "RefundDecision",
    "RefundTier",
    "decide",
    "resolve_deposit",
]
