from __future__ import annotations

import re

_PROMO_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_promo_code(raw_code: str) -> str:
    """Uppercases a customer-entered code and drops any whitespace."""
    normalized = raw_code.strip().upper()
    return _PROMO_WHITESPACE_PATTERN.sub("", normalized)
