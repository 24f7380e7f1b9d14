"""
Tests for the account registry
"""

import pytest
from decimal import Decimal

from retail_ledger.accounts import Account
from retail_ledger.registry import AccountRegistry
from retail_ledger.storage import InMemoryStorage
from retail_ledger.transactions import TransactionKind


@pytest.fixture
def registry():
    return AccountRegistry(InMemoryStorage())


class TestAccountRegistry:
    """Test registration and lookup"""

    def test_open_account(self, registry):
        """Test opening and registering an account"""
        result = registry.open_account("1234567890123456", "abc123", "Ana Ciobanu", Decimal('100'))

        assert result.ok
        assert registry.get("1234567890123456") is result.account
        assert "1234567890123456" in registry
        assert len(registry) == 1

    def test_duplicate_account_number(self, registry):
        """Test rejection of a duplicate account number"""
        registry.open_account("1234567890123456", "abc123", "Ana Ciobanu")
        result = registry.open_account("1234567890123456", "xyz789", "Other Owner")

        assert not result.ok
        assert "already exists" in result.error.message
        assert registry.get("1234567890123456").owner_name == "Ana Ciobanu"

    def test_invalid_account_not_registered(self, registry):
        """Test that an invalid account is not registered"""
        result = registry.open_account("123", "abc123", "Ana Ciobanu")
        assert not result.ok
        assert len(registry) == 0

    def test_register_and_remove(self, registry, account):
        """Test registering and removing an existing account"""
        assert registry.register(account)
        assert not registry.register(account)
        assert registry.remove(account.account_number)
        assert not registry.remove(account.account_number)
        assert registry.get(account.account_number) is None

    def test_accounts_sorted(self, registry, account, other_account):
        """Test that accounts are listed by account number"""
        registry.register(other_account)
        registry.register(account)
        assert [a.account_number for a in registry.accounts()] == [
            account.account_number, other_account.account_number
        ]

    def test_default_storage(self):
        """Test that the registry defaults to in-memory storage"""
        assert isinstance(AccountRegistry().storage, InMemoryStorage)

    def test_transfer_between_registered_accounts(self, registry, rates):
        """Test a transfer between registered accounts"""
        registry.open_account("1111111111111111", "abc123", "Sender Name", Decimal('300'))
        registry.open_account("2222222222222222", "abc123", "Receiver Name")

        source = registry.get("1111111111111111")
        target = registry.get("2222222222222222")
        assert source.transfer_to(target, 100, "MDL", rates, "Loan")
        assert registry.get("2222222222222222").balance("MDL") == Decimal('100')


class TestBulkInterest:
    """Test the back-office interest run"""

    def test_apply_interest(self, registry):
        """Test the back-office interest run"""
        registry.open_account("1111111111111111", "abc123", "Rich Owner", Decimal('10000'))
        registry.open_account("2222222222222222", "abc123", "Small Owner", Decimal('10'))
        registry.open_account("3333333333333333", "abc123", "Closed Owner", Decimal('10000'))
        registry.get("3333333333333333").deactivate()

        recorded = registry.apply_interest(5)

        assert list(recorded) == ["1111111111111111"]
        assert recorded["1111111111111111"][0].kind == TransactionKind.INTEREST
        assert registry.get("2222222222222222").balance("MDL") > Decimal('10')
        assert registry.get("3333333333333333").balance("MDL") == Decimal('10000')
