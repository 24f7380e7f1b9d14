"""
Currency Exchange Engine

Stateless conversion and commission arithmetic. Every function takes the
rate table as an argument; nothing here owns or caches rates. The account
ledger's exchange operation is built on ``quote_exchange`` so that a
standalone quote and an executed exchange always agree.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Mapping, Optional

from .currency import (
    Currency, CurrencyLike, AmountLike, BASE_CURRENCY, to_decimal, quantize
)


DEFAULT_COMMISSION_RATE = Decimal('0.005')


class ExchangeError(ValueError):
    """Raised when a conversion cannot be computed"""
    pass


@dataclass(frozen=True)
class ExchangeQuote:
    """Result of pricing an exchange before any balance moves"""
    from_currency: Currency
    to_currency: Currency
    amount: Decimal          # Debited, in from_currency
    amount_in_base: Decimal  # Value of amount in the base currency
    gross: Decimal           # Converted amount before commission, in to_currency
    commission: Decimal      # Deducted from gross, in to_currency
    received: Decimal        # Credited, in to_currency

    @property
    def effective_rate(self) -> Decimal:
        """Units of to_currency received per unit of from_currency"""
        return self.received / self.amount

    def describe(self) -> str:
        return (
            f"Exchange {self.from_currency.code}->{self.to_currency.code}: "
            f"{quantize(self.amount, self.from_currency)} {self.from_currency.code} -> "
            f"{quantize(self.received, self.to_currency)} {self.to_currency.code} "
            f"(commission {self.commission.quantize(Decimal('0.0001'))} {self.to_currency.code})"
        )


def _resolve(currency: CurrencyLike) -> Currency:
    resolved = Currency.from_code(currency)
    if resolved is None:
        raise ExchangeError(f"Unsupported currency: {currency}")
    return resolved


def _rate(rates: Mapping, currency: Currency) -> Decimal:
    if currency == BASE_CURRENCY:
        return Decimal('1')
    # Plain dicts keyed by code string are accepted as well as RateTable
    if currency in rates:
        rate = to_decimal(rates[currency])
    elif currency.code in rates:
        rate = to_decimal(rates[currency.code])
    else:
        raise ExchangeError(f"No exchange rate available for {currency.code}")
    if rate <= 0:
        raise ExchangeError(f"Invalid exchange rate for {currency.code}: {rate}")
    return rate


def to_base(amount: AmountLike, currency: CurrencyLike, rates: Mapping) -> Decimal:
    """Value of an amount in the base currency"""
    currency = _resolve(currency)
    return to_decimal(amount) * _rate(rates, currency)


def convert(amount: AmountLike, from_currency: CurrencyLike, to_currency: CurrencyLike,
            rates: Mapping) -> Decimal:
    """
    Convert an amount between currencies, bridging through the base currency

    No commission is applied.

    Raises:
        ExchangeError: If a currency is unknown or a rate is missing
    """
    amount = to_decimal(amount)
    from_currency = _resolve(from_currency)
    to_currency = _resolve(to_currency)

    if from_currency == to_currency:
        return amount
    if from_currency == BASE_CURRENCY:
        return amount / _rate(rates, to_currency)
    if to_currency == BASE_CURRENCY:
        return amount * _rate(rates, from_currency)
    return (amount * _rate(rates, from_currency)) / _rate(rates, to_currency)


def quote_exchange(amount: AmountLike, from_currency: CurrencyLike, to_currency: CurrencyLike,
                   rates: Mapping, commission_rate: Optional[AmountLike] = None) -> ExchangeQuote:
    """
    Price a currency exchange.

    The commission is a fixed share of the destination-currency amount.

    Args:
        amount: Amount given, in from_currency
        from_currency: Currency debited
        to_currency: Currency credited
        rates: Base-currency rate table
        commission_rate: Fraction deducted from the converted amount (0.005 by default)

    Returns:
        ExchangeQuote

    Raises:
        ExchangeError: Same currency, non-positive amount, unknown currency or missing rate
    """
    amount = to_decimal(amount)
    source = _resolve(from_currency)
    target = _resolve(to_currency)

    if source == target:
        raise ExchangeError("Cannot exchange a currency for itself")
    if amount <= 0:
        raise ExchangeError("Exchange amount must be positive")

    commission_rate = DEFAULT_COMMISSION_RATE if commission_rate is None else to_decimal(commission_rate)
    if commission_rate <= 0 or commission_rate >= 1:
        raise ExchangeError("Commission rate must be in (0, 1)")

    gross = convert(amount, source, target, rates)
    commission = gross * commission_rate

    return ExchangeQuote(
        from_currency=source,
        to_currency=target,
        amount=amount,
        amount_in_base=to_base(amount, source, rates),
        gross=gross,
        commission=commission,
        received=gross - commission
    )
