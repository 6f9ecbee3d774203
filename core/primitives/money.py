"""
Ledgerline Money Primitive — Currency-Tagged Decimal Amounts
=============================================================
Used by: Account balances, Transaction lines, Trial balance.

RULES (NON-NEGOTIABLE):
- Amounts are decimal.Decimal — NO floats
- Currency is explicit on every monetary value (ISO 4217)
- Binary operations require identical currency; conversion is the
  caller's job (exchange rates are consumed, never computed here)
- zero() is currency-specific
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union


AmountLike = Union[Decimal, int, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Coerce int/str/Decimal into Decimal. Floats are refused."""
    if isinstance(value, bool):
        raise TypeError("Money amount must be Decimal, int or str, got bool.")
    if isinstance(value, float):
        raise TypeError(
            "Money amount must be Decimal, int or str, got float. "
            "Floats cannot represent money exactly."
        )
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid money amount: {value!r}.") from exc
    raise TypeError(f"Money amount must be Decimal, got {type(value).__name__}.")


@dataclass(frozen=True)
class Money:
    """
    Monetary value: arbitrary-precision decimal amount + currency code.

    Money(amount=Decimal("100.00"), currency="USD")
    Money.of("90.00", "USD")
    """
    amount: Decimal
    currency: str

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if not self.amount.is_finite():
            raise ValueError(f"Money amount must be finite, got {self.amount}.")
        if not self.currency or not isinstance(self.currency, str):
            raise ValueError("currency must be a non-empty ISO 4217 string.")
        if len(self.currency) != 3 or not self.currency.isalpha() or not self.currency.isupper():
            raise ValueError(
                f"currency must be 3-letter upper-case ISO 4217 code, "
                f"got '{self.currency}'."
            )

    # ── Arithmetic ────────────────────────────────────────────

    def __add__(self, other: Money) -> Money:
        self._assert_same_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        self._assert_same_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return self.negate()

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __lt__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        self._assert_same_currency(other)
        return self.amount >= other.amount

    def negate(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def same_currency(self, other: Money) -> bool:
        return isinstance(other, Money) and other.currency == self.currency

    def _assert_same_currency(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot operate with {type(other).__name__}.")
        if self.currency != other.currency:
            raise ValueError(
                f"Currency mismatch: {self.currency} vs {other.currency}. "
                f"Cross-currency operations require explicit conversion."
            )

    # ── Serialization ─────────────────────────────────────────

    def to_dict(self) -> dict:
        return {"amount": str(self.amount), "currency": self.currency}

    @classmethod
    def from_dict(cls, data: dict) -> Money:
        return cls(amount=Decimal(str(data["amount"])), currency=data["currency"])

    @classmethod
    def of(cls, amount: AmountLike, currency: str) -> Money:
        return cls(amount=to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(amount=Decimal("0"), currency=currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
