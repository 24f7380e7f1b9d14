"""
Exchange Rate Board

In-process provider of base-currency rates. Callers take a ``snapshot()``
and pass the resulting RateTable into ledger operations; accounts never
hold a reference to the board itself.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional
import threading

from .currency import Currency, CurrencyLike, AmountLike, BASE_CURRENCY, RateTable, to_decimal
from .logging_config import get_logger, log_action


DEFAULT_RATES: Dict[Currency, Decimal] = {
    Currency.EUR: Decimal('19.45'),
    Currency.USD: Decimal('17.80'),
    Currency.GBP: Decimal('22.10'),
    Currency.RON: Decimal('4.00'),
    Currency.CHF: Decimal('20.35'),
    Currency.CAD: Decimal('13.50'),
}


@dataclass(frozen=True)
class RateChange:
    """One entry in the rate history"""
    currency: Currency
    old_rate: Optional[Decimal]
    new_rate: Decimal
    timestamp: datetime

    @property
    def delta(self) -> Decimal:
        return self.new_rate - (self.old_rate or Decimal('0'))


class ExchangeRateBoard:
    """Mutable rate board with change history"""

    def __init__(self, rates: Optional[Mapping[CurrencyLike, AmountLike]] = None):
        self._lock = threading.RLock()
        self._rates: Dict[Currency, Decimal] = {}
        self._history: List[RateChange] = []
        self.logger = get_logger("retail_ledger.rates")

        initial = DEFAULT_RATES if rates is None else rates
        # RateTable validates codes and positivity
        for currency, rate in RateTable(initial).items():
            if currency != BASE_CURRENCY:
                self._set(currency, rate)

    def _set(self, currency: Currency, rate: Decimal) -> RateChange:
        change = RateChange(currency, self._rates.get(currency), rate, datetime.now(timezone.utc))
        self._rates[currency] = rate
        self._history.append(change)
        return change

    def rate(self, currency: CurrencyLike) -> Optional[Decimal]:
        """Base-currency value of one unit, or None if not quoted"""
        resolved = Currency.from_code(currency)
        if resolved == BASE_CURRENCY:
            return Decimal('1')
        with self._lock:
            return self._rates.get(resolved)

    def update_rate(self, currency: CurrencyLike, new_rate: AmountLike) -> bool:
        """
        Set the rate of a currency.

        Returns:
            False for the base currency, unknown codes and non-positive rates
        """
        resolved = Currency.from_code(currency)
        if resolved is None or resolved == BASE_CURRENCY:
            return False
        try:
            rate = to_decimal(new_rate)
        except ValueError:
            return False
        if rate <= 0:
            return False

        with self._lock:
            change = self._set(resolved, rate)

        log_action(
            self.logger, "info", f"Rate {resolved.code} updated",
            action="update_rate", resource=f"rate:{resolved.code}",
            extra={
                "old_rate": str(change.old_rate) if change.old_rate is not None else None,
                "new_rate": str(rate),
                "delta": str(change.delta)
            }
        )
        return True

    @property
    def currencies(self) -> List[Currency]:
        with self._lock:
            return sorted(self._rates, key=lambda c: c.code)

    @property
    def history(self) -> List[RateChange]:
        with self._lock:
            return list(self._history)

    def snapshot(self) -> RateTable:
        """Immutable copy of the current rates"""
        with self._lock:
            return RateTable(dict(self._rates))
