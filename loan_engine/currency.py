"""
Money Module

Decimal-backed money for the amortization engine. Every monetary value is
quantized to the currency's minor unit, so tolerance checks on payments and
balances compare exact decimals. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Union

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')

Number = Union[Decimal, int, str]


class Currency(Enum):
    """Loan currencies as (code, decimal places)"""
    INR = ("INR", 2)
    USD = ("USD", 2)
    EUR = ("EUR", 2)
    GBP = ("GBP", 2)
    JPY = ("JPY", 0)

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. 0.01 for INR"""
        return Decimal(1).scaleb(-self.precision)


def _as_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@total_ordering
@dataclass(frozen=True, eq=False)
class Money:
    """
    An amount in one currency, rounded half-up to the minor unit.

    Arithmetic and ordering between different currencies raise ValueError.
    Multiplying or dividing by a plain number re-rounds the result.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        amount = _as_decimal(self.amount)
        object.__setattr__(self, 'amount', amount.quantize(self.currency.minor_unit, rounding=ROUND_HALF_UP))

    @classmethod
    def zero(cls, currency: Currency) -> 'Money':
        return cls(ZERO, currency)

    def _same_currency(self, other: 'Money', verb: str) -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency.code} and {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._same_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._same_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor: Number) -> 'Money':
        return Money(self.amount * _as_decimal(factor), self.currency)

    def __truediv__(self, divisor: Number) -> 'Money':
        return Money(self.amount / _as_decimal(divisor), self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount), self.currency)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return (self.amount, self.currency) == (other.amount, other.currency)

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __lt__(self, other: 'Money') -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._same_currency(other, "compare")
        return self.amount < other.amount

    def is_zero(self) -> bool:
        return self.amount == ZERO

    def is_positive(self) -> bool:
        return self.amount > ZERO

    def is_negative(self) -> bool:
        return self.amount < ZERO

    def ratio_to(self, other: 'Money') -> Decimal:
        """Unrounded ratio self / other, used for principal/interest splits"""
        self._same_currency(other, "divide")
        if other.is_zero():
            return ZERO
        return self.amount / other.amount

    def to_string(self) -> str:
        """Display form, e.g. ``INR 12,000.00``"""
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


def to_decimal(value: Union[str, int, float, Decimal]) -> Decimal:
    """
    Convert user input to Decimal without passing through binary float

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError:
            raise ValueError(f"Cannot convert '{value}' to Decimal")

    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result
