"""
Shared fixtures: rate tables, a controllable clock and ready-made accounts.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from retail_ledger.currency import RateTable
from retail_ledger.accounts import Account


class FakeClock:
    """Clock whose time only moves when told to"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


@pytest.fixture
def rates():
    """Rate table used throughout the scenarios (values in MDL)"""
    return RateTable({
        "EUR": Decimal('19.45'),
        "USD": Decimal('17.80'),
        "GBP": Decimal('22.10'),
        "RON": Decimal('4.00'),
    })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def account(clock):
    """Active account with 1000 MDL"""
    return Account("1234567890123456", "secret1", "Ion Popescu", Decimal('1000'), clock=clock)


@pytest.fixture
def other_account(clock):
    """Second active account with 500 MDL"""
    return Account("6543210987654321", "secret2", "Maria Rusu", Decimal('500'), clock=clock)
