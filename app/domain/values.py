import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Union

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_SKU_RE = re.compile(r"^[A-Z0-9]{3,10}$")
_CENT = Decimal("0.01")

MAX_QUANTITY = 1000


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str

    @classmethod
    def create(cls, amount: Union[Decimal, int, float, str], currency: str) -> "Money":
        """Validates the currency code and rounds the amount to cents."""
        if not currency or len(currency.strip()) != 3:
            raise ValueError("Currency must be a 3-letter code")
        if not _CURRENCY_RE.match(currency):
            raise ValueError("Currency must be uppercase letters")
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {amount!r}")
        if value < 0:
            raise ValueError("Amount cannot be negative")
        return cls(value.quantize(_CENT, rounding=ROUND_HALF_UP), currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls.create(0, currency)

    def add(self, other: "Money") -> "Money":
        if self.currency != other.currency:
            raise ValueError("Cannot add money of different currencies")
        return Money.create(self.amount + other.amount, self.currency)

    def multiply(self, multiplier: int) -> "Money":
        return Money.create(self.amount * multiplier, self.currency)

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": float(self.amount), "currency": self.currency}


@dataclass(frozen=True)
class Sku:
    value: str

    @classmethod
    def create(cls, value: str) -> "Sku":
        if not value or not value.strip():
            raise ValueError("SKU cannot be empty")
        value = value.strip()
        if not _SKU_RE.match(value):
            raise ValueError("SKU must be between 3-10 uppercase alphanumeric characters")
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Quantity:
    value: int

    @classmethod
    def create(cls, value: int) -> "Quantity":
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("Quantity must be an integer")
        if value <= 0:
            raise ValueError("Quantity must be greater than zero")
        if value > MAX_QUANTITY:
            raise ValueError(f"Quantity cannot exceed {MAX_QUANTITY} units")
        return cls(value)

    def __int__(self) -> int:
        return self.value


@dataclass(frozen=True)
class OrderLine:
    sku: Sku
    quantity: Quantity
    unit_price: Money

    @property
    def subtotal(self) -> Money:
        return self.unit_price.multiply(self.quantity.value)
