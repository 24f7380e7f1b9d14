"""
Account Registry Module

Keeps accounts by account number in an injected storage backend. Lookup
only; searching and reporting screens belong to the presentation layer.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from .accounts import Account
from .currency import AmountLike
from .results import OpenResult, ValidationError
from .storage import StorageInterface, InMemoryStorage
from .transactions import Transaction
from .logging_config import get_logger, log_action


class AccountRegistry:
    """Registry of open accounts keyed by account number"""

    def __init__(self, storage: Optional[StorageInterface] = None):
        self.storage = storage or InMemoryStorage()
        self.table_name = "accounts"
        self.logger = get_logger("retail_ledger.registry")

    def open_account(self, account_number: str, credential: str, owner_name: str,
                     initial_balance: AmountLike = Decimal('0'), **kwargs) -> OpenResult:
        """
        Open and register an account.

        Returns:
            OpenResult; an error when validation fails or the number is taken
        """
        if self.exists(account_number):
            return OpenResult(error=ValidationError(
                "account_number", f"Account {account_number} already exists"
            ))

        result = Account.open(account_number, credential, owner_name, initial_balance, **kwargs)
        if not result.ok:
            return result

        if not self.register(result.account):
            return OpenResult(error=ValidationError(
                "account_number", f"Account {account_number} already exists"
            ))
        return result

    def register(self, account: Account) -> bool:
        """Add an existing account; False if the number is already registered"""
        saved = self.storage.save_if_absent(self.table_name, account.account_number, account)
        if saved:
            log_action(self.logger, "info", "Account registered",
                       account=account.account_number, action="register_account")
        return saved

    def get(self, account_number: str) -> Optional[Account]:
        return self.storage.load(self.table_name, account_number)

    def exists(self, account_number: str) -> bool:
        return self.storage.exists(self.table_name, account_number)

    def remove(self, account_number: str) -> bool:
        removed = self.storage.delete(self.table_name, account_number)
        if removed:
            log_action(self.logger, "info", "Account removed",
                       account=account_number, action="remove_account")
        return removed

    def accounts(self) -> List[Account]:
        """All registered accounts ordered by account number"""
        return sorted(self.storage.load_all(self.table_name), key=lambda a: a.account_number)

    def __len__(self) -> int:
        return self.storage.count(self.table_name)

    def __contains__(self, account_number: str) -> bool:
        return self.exists(account_number)

    def apply_interest(self, annual_rate_percent: AmountLike) -> Dict[str, List[Transaction]]:
        """
        Accrue one day of interest on every account (back-office run)

        Inactive accounts are skipped by the accounts themselves.

        Returns:
            Recorded INTEREST transactions per account number, for accounts
            that recorded any
        """
        recorded = {}
        for account in self.accounts():
            transactions = account.calculate_interest(annual_rate_percent)
            if transactions:
                recorded[account.account_number] = transactions

        log_action(
            self.logger, "info", "Interest run completed",
            action="apply_interest",
            extra={"rate": str(annual_rate_percent), "accounts_credited": len(recorded)}
        )
        return recorded
