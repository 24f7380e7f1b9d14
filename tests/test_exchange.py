"""
Test suite for the exchange engine

Cross-rate bridging through MDL and the 0.5% commission on the destination amount.
"""

import pytest
from decimal import Decimal

from retail_ledger.currency import Currency, RateTable
from retail_ledger.exchange import (
    ExchangeError, ExchangeQuote, convert, quote_exchange, to_base
)


TOLERANCE = Decimal('0.000001')


class TestConvert:
    """Test commission-free conversion"""

    def test_base_to_foreign(self, rates):
        """Test conversion from the base currency"""
        assert convert(Decimal('1945'), "MDL", "EUR", rates) == Decimal('100')

    def test_foreign_to_base(self, rates):
        """Test conversion into the base currency"""
        assert convert(Decimal('100'), "EUR", "MDL", rates) == Decimal('1945.00')

    def test_cross_rate_bridges_through_base(self, rates):
        """Test that cross rates bridge through the base currency"""
        result = convert(Decimal('100'), "EUR", "USD", rates)
        assert abs(result - Decimal('1945') / Decimal('17.80')) < TOLERANCE

    def test_same_currency_is_identity(self, rates):
        """Test that converting to the same currency is the identity"""
        assert convert(Decimal('12.34'), "USD", "USD", rates) == Decimal('12.34')

    def test_accepts_plain_dict_rates(self):
        """Test that rates may be given as a plain dict of codes"""
        assert convert(10, "USD", "MDL", {"USD": 17.80}) == Decimal('178.0')

    def test_missing_rate(self, rates):
        """Test that a missing rate raises ExchangeError"""
        with pytest.raises(ExchangeError, match="No exchange rate available for CHF"):
            convert(Decimal('1'), "CHF", "MDL", rates)

    def test_unknown_currency(self, rates):
        """Test that an unknown currency raises ExchangeError"""
        with pytest.raises(ExchangeError, match="Unsupported currency"):
            convert(Decimal('1'), "XYZ", "MDL", rates)

    def test_to_base(self, rates):
        """Test valuing an amount in the base currency"""
        assert to_base(Decimal('200'), Currency.EUR, rates) == Decimal('3890.00')
        assert to_base(Decimal('200'), Currency.MDL, rates) == Decimal('200')


class TestQuoteExchange:
    """Test priced exchanges"""

    def test_eur_to_usd_scenario(self, rates):
        """100 EUR -> USD at EUR=19.45, USD=17.80 MDL"""
        quote = quote_exchange(Decimal('100'), "EUR", "USD", rates)

        assert isinstance(quote, ExchangeQuote)
        assert quote.amount_in_base == Decimal('1945.00')
        assert abs(quote.gross - Decimal('109.2696629')) < Decimal('0.0000001')
        assert abs(quote.commission - Decimal('0.5463483')) < Decimal('0.0000001')
        assert abs(quote.received - Decimal('108.7233146')) < Decimal('0.0000001')
        assert quote.received.quantize(Decimal('0.01')) == Decimal('108.72')

    def test_received_equals_cross_rate_less_commission(self, rates):
        """Test that received equals the cross rate less 0.5% commission"""
        for source, target in [("MDL", "EUR"), ("USD", "MDL"), ("GBP", "RON"), ("RON", "USD")]:
            amount = Decimal('250')
            quote = quote_exchange(amount, source, target, rates)
            expected = convert(amount, source, target, rates) * (Decimal('1') - Decimal('0.005'))
            assert abs(quote.received - expected) < TOLERANCE
            assert quote.commission > 0

    def test_custom_commission_rate(self, rates):
        """Test a custom commission rate"""
        quote = quote_exchange(Decimal('1945'), "MDL", "EUR", rates, commission_rate=Decimal('0.01'))
        assert quote.gross == Decimal('100')
        assert quote.commission == Decimal('1.00')
        assert quote.received == Decimal('99.00')

    def test_zero_commission_rejected(self, rates):
        """Test that every exchange carries a strictly positive commission"""
        with pytest.raises(ExchangeError, match="Commission rate"):
            quote_exchange(Decimal('10'), "EUR", "MDL", rates, commission_rate=0)

    def test_same_currency_rejected(self, rates):
        """Test rejection of exchanging a currency for itself"""
        with pytest.raises(ExchangeError, match="itself"):
            quote_exchange(Decimal('10'), "EUR", "EUR", rates)

    def test_non_positive_amount_rejected(self, rates):
        """Test rejection of non-positive amounts"""
        with pytest.raises(ExchangeError, match="positive"):
            quote_exchange(Decimal('0'), "EUR", "USD", rates)

    def test_invalid_commission_rate(self, rates):
        """Test rejection of a commission rate of 100%"""
        with pytest.raises(ExchangeError, match="Commission rate"):
            quote_exchange(Decimal('10'), "EUR", "USD", rates, commission_rate=Decimal('1'))

    def test_quote_does_not_touch_rates(self, rates):
        """Test that quoting leaves the rate table untouched"""
        before = dict(rates)
        quote_exchange(Decimal('10'), "EUR", "USD", rates)
        assert dict(rates) == before

    def test_describe(self, rates):
        """Test the human-readable quote description"""
        quote = quote_exchange(Decimal('100'), "EUR", "USD", rates)
        text = quote.describe()
        assert "EUR->USD" in text
        assert "108.72 USD" in text
        assert "0.5463" in text
