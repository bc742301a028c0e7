from __future__ import annotations

FULL_REFUND_MIN_DAYS_EXCLUSIVE = 21
FUTURE_CREDIT_FULL_MIN_DAYS = 14
CREDIT_VALIDITY_MONTHS = 12
