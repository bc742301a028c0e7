from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.commerce.errors import CurrencyMismatchError, InvalidPercentError

DEFAULT_CURRENCY = "USD"
MINOR_UNITS_PER_MAJOR = 100


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class Money:
    """Fixed-point amount stored as integer minor units (cents)."""

    minor_units: int
    currency: str = DEFAULT_CURRENCY

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(0, currency)

    @classmethod
    def from_decimal(cls, amount: Decimal | str | int, currency: str = DEFAULT_CURRENCY) -> Money:
        """Builds Money from a major-unit amount such as ``"19.99"``, rounding half-up to cents."""
        major = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
        return cls(_round_half_up(major * MINOR_UNITS_PER_MAJOR), currency)

    def to_decimal(self) -> Decimal:
        return (Decimal(self.minor_units) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))

    def _require_same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(f"{self.currency} != {other.currency}")

    def add(self, other: Money) -> Money:
        self._require_same_currency(other)
        return Money(self.minor_units + other.minor_units, self.currency)

    def subtract(self, other: Money) -> Money:
        self._require_same_currency(other)
        return Money(self.minor_units - other.minor_units, self.currency)

    def multiply(self, quantity: int) -> Money:
        return Money(self.minor_units * quantity, self.currency)

    def multiply_by_percent(self, percent: Decimal | int) -> Money:
        percent = Decimal(percent)
        if percent < 0 or percent > 100:
            raise InvalidPercentError(f"percent out of range: {percent}")
        return Money(_round_half_up(Decimal(self.minor_units) * percent / 100), self.currency)

    def is_zero(self) -> bool:
        return self.minor_units == 0

    def is_negative(self) -> bool:
        return self.minor_units < 0

    def clamp_non_negative(self) -> Money:
        if self.minor_units < 0:
            return Money(0, self.currency)
        return self

    def min_of(self, other: Money) -> Money:
        self._require_same_currency(other)
        return self if self.minor_units <= other.minor_units else other

    def __lt__(self, other: Money) -> bool:
        self._require_same_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: Money) -> bool:
        self._require_same_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: Money) -> bool:
        self._require_same_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: Money) -> bool:
        self._require_same_currency(other)
        return self.minor_units >= other.minor_units

    def __str__(self) -> str:
        return f"{self.to_decimal()} {self.currency}"


def sum_money(amounts: list[Money], *, currency: str = DEFAULT_CURRENCY) -> Money:
    total = Money.zero(currency)
    for amount in amounts:
        total = total.add(amount)
    return total
