"""
Multi-Currency Support Module

Handles ISO 4217 currency codes, money values and per-call rate tables.
All rates are expressed in the base currency (MDL). NEVER uses float for
monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Union
from enum import Enum

# Set global decimal context for financial precision
getcontext().prec = 28  # High precision for financial calculations


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    MDL = ("MDL", 2)  # Moldovan Leu, base currency
    EUR = ("EUR", 2)  # Euro
    USD = ("USD", 2)  # US Dollar
    GBP = ("GBP", 2)  # British Pound
    RON = ("RON", 2)  # Romanian Leu
    CHF = ("CHF", 2)  # Swiss Franc
    CAD = ("CAD", 2)  # Canadian Dollar

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: Union['Currency', str, None]) -> Optional['Currency']:
        """Resolve a currency from its code, or None if unknown"""
        if isinstance(code, Currency):
            return code
        if not isinstance(code, str):
            return None
        try:
            return cls[code.strip().upper()]
        except KeyError:
            return None


BASE_CURRENCY = Currency.MDL

# Currencies an account carries balances for unless opened with a subset
SUPPORTED_CURRENCIES = frozenset({
    Currency.MDL, Currency.EUR, Currency.USD, Currency.GBP, Currency.RON
})

CurrencyLike = Union[Currency, str]
AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a numeric value to Decimal without float artefacts

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Cannot convert {value!r} to Decimal")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def quantize(value: Decimal, currency: Currency) -> Decimal:
    """Round a Decimal to the display precision of a currency"""
    return value.quantize(
        Decimal('0.1') ** currency.precision,
        rounding=ROUND_HALF_UP
    )


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation.

    The amount keeps full Decimal precision so that interest and exchange
    arithmetic stays exact; use ``rounded()`` or ``to_string()`` for display.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', to_decimal(self.amount))

    def __add__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency.code} and {other.currency.code}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract {other.currency.code} from {self.currency.code}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        return Money(self.amount * to_decimal(multiplier), self.currency)

    def __lt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount <= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def rounded(self) -> 'Money':
        """Money rounded to the currency's precision"""
        return Money(quantize(self.amount, self.currency), self.currency)

    def to_string(self) -> str:
        """Format for display"""
        return f"{self.currency.code} {quantize(self.amount, self.currency):,.{self.currency.precision}f}"


class RateTable(Mapping):
    """
    Read-only table of base-currency rates.

    ``rates[EUR] == Decimal('19.45')`` means one EUR is worth 19.45 MDL.
    The base currency always maps to 1. Tables are supplied by the caller
    for each operation and are never mutated by the ledger.
    """

    def __init__(self, rates: Mapping[CurrencyLike, AmountLike], base: Currency = BASE_CURRENCY):
        self.base = base
        table: Dict[Currency, Decimal] = {}
        for code, value in rates.items():
            currency = Currency.from_code(code)
            if currency is None:
                raise ValueError(f"Unknown currency code: {code}")
            rate = to_decimal(value)
            if rate <= 0:
                raise ValueError(f"Rate for {currency.code} must be positive")
            table[currency] = rate
        table[base] = Decimal('1')
        self._rates = table

    def __getitem__(self, currency: CurrencyLike) -> Decimal:
        resolved = Currency.from_code(currency)
        if resolved is None or resolved not in self._rates:
            raise KeyError(currency)
        return self._rates[resolved]

    def __contains__(self, currency) -> bool:
        resolved = Currency.from_code(currency)
        return resolved is not None and resolved in self._rates

    def __iter__(self) -> Iterator[Currency]:
        return iter(self._rates)

    def __len__(self) -> int:
        return len(self._rates)

    def __repr__(self) -> str:
        rates = ", ".join(f"{c.code}={r}" for c, r in sorted(self._rates.items(), key=lambda i: i[0].code))
        return f"RateTable({rates})"
