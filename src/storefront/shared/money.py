"""Money value object — fixed-point monetary amounts with currency.

Amounts are held as integer minor units (cents for USD). Every operation that
can produce a fractional minor unit rounds half-up at that boundary, so two
parties computing the same totals independently always agree to the cent.
Decimal display strings exist only at the UI boundary (``from_display`` /
``to_display``).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.shared.errors import StorefrontError

VALID_CURRENCIES = frozenset(
    {
        "USD",
        "EUR",
        "GBP",
        "JPY",
        "CAD",
        "AUD",
        "CHF",
        "CNY",
        "INR",
        "MXN",
        "BRL",
        "KRW",
        "SGD",
        "HKD",
        "NOK",
        "SEK",
        "DKK",
        "NZD",
        "ZAR",
        "TWD",
    }
)

# Currencies without a fractional minor unit
_ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})

_HUNDRED = Decimal(100)


class CurrencyMismatch(StorefrontError):
    """Two Money values of different currencies were combined."""


def minor_unit_exponent(currency: str) -> int:
    """Number of decimal places between the major and the minor unit."""
    return 0 if currency in _ZERO_DECIMAL_CURRENCIES else 2


def to_percentage(value: int | Decimal | str) -> Decimal:
    """Normalize a percentage (0–100) to Decimal, rejecting binary floats."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Percentages must be int, Decimal or str, not {type(value).__name__}")
    try:
        percentage = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except InvalidOperation as exc:
        raise ValueError(f"Invalid percentage: {value!r}") from exc
    if not percentage.is_finite() or percentage < 0 or percentage > _HUNDRED:
        raise ValueError(f"Percentage must be between 0 and 100, got {value!r}")
    return percentage


class Money(BaseModel):
    """Value object representing a monetary amount in minor units with currency."""

    model_config = ConfigDict(frozen=True)

    amount: int = Field(ge=0, strict=True)
    currency: str = Field(default="USD", max_length=3)

    @field_validator("currency")
    @classmethod
    def currency_must_be_valid_iso_4217(cls, value: str) -> str:
        if value not in VALID_CURRENCIES:
            raise ValueError(f"Unsupported currency: {value}")
        return value

    # -------------------------------------------------------------------
    # Construction / display boundary
    # -------------------------------------------------------------------
    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(amount=0, currency=currency)

    @classmethod
    def from_display(cls, text: str, currency: str = "USD") -> "Money":
        """Parse a decimal display string ("55.00") into minor units."""
        exponent = minor_unit_exponent(currency)
        try:
            major = Decimal(str(text).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid monetary amount: {text!r}") from exc
        minor = (major.scaleb(exponent)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return cls(amount=int(minor), currency=currency)

    def to_display(self) -> str:
        exponent = minor_unit_exponent(self.currency)
        if exponent == 0:
            return str(self.amount)
        return f"{Decimal(self.amount).scaleb(-exponent):.{exponent}f}"

    def __str__(self) -> str:
        return f"{self.to_display()} {self.currency}"

    # -------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------
    def _ensure_compatible(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatch({"currency": [f"Cannot combine {self.currency} with {other.currency}"]})

    def add(self, other: "Money") -> "Money":
        self._ensure_compatible(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def subtract(self, other: "Money") -> "Money":
        """Subtract, flooring at zero. Money is never negative."""
        self._ensure_compatible(other)
        return Money(amount=max(self.amount - other.amount, 0), currency=self.currency)

    def multiply(self, quantity: int) -> "Money":
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise TypeError(f"Quantity must be an integer, got {type(quantity).__name__}")
        if quantity < 0:
            raise ValueError(f"Quantity must not be negative, got {quantity}")
        return Money(amount=self.amount * quantity, currency=self.currency)

    def apply_percentage(self, percentage: int | Decimal | str) -> "Money":
        """Return ``percentage`` percent of this amount, rounded half-up to the minor unit."""
        share = Decimal(self.amount) * to_percentage(percentage) / _HUNDRED
        return Money(
            amount=int(share.quantize(Decimal(1), rounding=ROUND_HALF_UP)),
            currency=self.currency,
        )

    # -------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------
    def compare(self, other: "Money") -> int:
        self._ensure_compatible(other)
        return (self.amount > other.amount) - (self.amount < other.amount)

    def __lt__(self, other: "Money") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "Money") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "Money") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "Money") -> bool:
        return self.compare(other) >= 0

    def is_zero(self) -> bool:
        return self.amount == 0
