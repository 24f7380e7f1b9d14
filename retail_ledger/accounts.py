"""
Account Ledger Module

Per-account multi-currency balances, daily withdrawal tracking, activation
state and transaction history. Every money-moving operation validates first
and mutates only when all checks pass, under the account's own lock.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Any
from enum import Enum
import hashlib
import hmac
import re
import secrets
import threading

from .config import LedgerConfig, get_config
from .currency import (
    Currency, CurrencyLike, AmountLike, BASE_CURRENCY, SUPPORTED_CURRENCIES,
    to_decimal, quantize
)
from .exchange import ExchangeError, quote_exchange, to_base
from .results import OperationRejected, OperationResult, OpenResult, ValidationError
from .transactions import Statement, Transaction, TransactionKind, TransactionLog
from .transfers import TransferCoordinator
from .logging_config import get_logger, log_action


logger = get_logger("retail_ledger.accounts")

ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{16}$")
DAYS_PER_YEAR = Decimal(365)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccountState(Enum):
    """Account lifecycle states"""
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class PendingDebit:
    """A validated withdrawal ready to be applied or released"""
    currency: Currency
    amount: Decimal
    amount_in_base: Decimal


@dataclass(frozen=True)
class PendingCredit:
    """A validated deposit ready to be applied"""
    currency: Currency
    amount: Decimal


# Validators

def validate_account_number(account_number: Any) -> str:
    if not isinstance(account_number, str) or len(account_number) != 16:
        raise ValidationError("account_number", "Account number must have exactly 16 characters")
    if not ACCOUNT_NUMBER_PATTERN.match(account_number):
        raise ValidationError("account_number", "Account number must contain only digits")
    return account_number


def validate_credential(credential: Any, min_length: int = 6) -> str:
    if not isinstance(credential, str) or len(credential) < min_length:
        raise ValidationError("credential", f"Credential must have at least {min_length} characters")
    if not re.search(r"[A-Za-z]", credential) or not re.search(r"\d", credential):
        raise ValidationError("credential", "Credential must contain both letters and digits")
    return credential


def validate_owner_name(owner_name: Any, min_length: int = 2) -> str:
    if not isinstance(owner_name, str) or len(owner_name.strip()) < min_length:
        raise ValidationError("owner_name", f"Owner name must have at least {min_length} characters")
    return owner_name.strip()


def validate_initial_balance(initial_balance: AmountLike) -> Decimal:
    try:
        balance = to_decimal(initial_balance)
    except ValueError:
        raise ValidationError("initial_balance", f"Invalid initial balance: {initial_balance!r}")
    if balance < 0:
        raise ValidationError("initial_balance", "Initial balance cannot be negative")
    return balance


def _hash_credential(credential: str, salt: str) -> str:
    return hashlib.sha256((salt + credential).encode()).hexdigest()


class Account:
    """
    Bank account holding balances in several currencies.

    Balances, daily limit usage and history are only changed through the
    methods below. All of them run under ``self.lock`` (re-entrant), which
    the transfer coordinator also takes when it moves money between two
    accounts.
    """

    def __init__(
        self,
        account_number: str,
        credential: str,
        owner_name: str,
        initial_balance: AmountLike = Decimal('0'),
        currencies: Optional[Iterable[CurrencyLike]] = None,
        daily_withdrawal_limit: Optional[AmountLike] = None,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None
    ):
        self._config = config or get_config()
        self._clock = clock or utc_now

        self._minimum_deposit = to_decimal(self._config.minimum_deposit)
        self._minimum_daily_limit = to_decimal(self._config.minimum_daily_withdrawal_limit)
        self._interest_log_threshold = to_decimal(self._config.interest_log_threshold)

        # Validation happens before any state is assigned
        self._account_number = validate_account_number(account_number)
        validate_credential(credential, self._config.credential_min_length)
        owner_name = validate_owner_name(owner_name, self._config.owner_name_min_length)
        initial_balance = validate_initial_balance(initial_balance)
        supported = self._resolve_supported(currencies)
        limit = self._validate_daily_limit(
            self._config.default_daily_withdrawal_limit if daily_withdrawal_limit is None
            else daily_withdrawal_limit
        )

        self.lock = threading.RLock()
        self._credential_salt = secrets.token_hex(16)
        self._credential_hash = _hash_credential(credential, self._credential_salt)
        self._owner_name = owner_name
        self._supported = supported
        self._balances: Dict[Currency, Decimal] = {c: Decimal('0') for c in supported}
        self._balances[BASE_CURRENCY] = initial_balance
        self._state = AccountState.ACTIVE
        self._daily_withdrawal_limit = limit
        self._daily_withdrawal_used = Decimal('0')

        now = self._clock()
        self.created_at = now
        self.last_login_at: Optional[datetime] = None
        self._last_reset_date = now.date()
        self._history = TransactionLog()

        self._record(
            TransactionKind.CREATION, initial_balance, BASE_CURRENCY,
            "Account opened with initial balance"
        )

    @classmethod
    def open(cls, account_number: str, credential: str, owner_name: str,
             initial_balance: AmountLike = Decimal('0'), **kwargs) -> OpenResult:
        """
        Open an account without raising on invalid input.

        Returns:
            OpenResult holding the account, or the ValidationError that
            prevented it from being created
        """
        try:
            account = cls(account_number, credential, owner_name, initial_balance, **kwargs)
        except ValidationError as e:
            log_action(
                logger, "info", f"Account opening rejected: {e.message}",
                action="open_account", extra={"field": e.field_name}
            )
            return OpenResult(error=e)

        log_action(
            logger, "info", "Account opened",
            account=account.account_number, action="open_account",
            extra={"owner_name": account.owner_name}
        )
        return OpenResult(account=account)

    def _resolve_supported(self, currencies: Optional[Iterable[CurrencyLike]]) -> frozenset:
        if currencies is None:
            return SUPPORTED_CURRENCIES
        resolved = set()
        for code in currencies:
            currency = Currency.from_code(code)
            if currency is None:
                raise ValidationError("currencies", f"Unknown currency: {code}")
            resolved.add(currency)
        resolved.add(BASE_CURRENCY)
        return frozenset(resolved)

    def _validate_daily_limit(self, limit: AmountLike) -> Decimal:
        try:
            value = to_decimal(limit)
        except ValueError:
            raise ValidationError("daily_withdrawal_limit", f"Invalid daily limit: {limit!r}")
        if value < self._minimum_daily_limit:
            raise ValidationError(
                "daily_withdrawal_limit",
                f"Daily limit must be at least {self._minimum_daily_limit} {BASE_CURRENCY.code}"
            )
        return value

    def __repr__(self) -> str:
        return f"Account(number={self._account_number!r}, owner={self._owner_name!r}, state={self._state.value})"

    # Properties

    @property
    def account_number(self) -> str:
        return self._account_number

    @property
    def owner_name(self) -> str:
        return self._owner_name

    @property
    def state(self) -> AccountState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == AccountState.ACTIVE

    @property
    def supported_currencies(self) -> frozenset:
        return self._supported

    @property
    def balances(self) -> Dict[Currency, Decimal]:
        """Copy of all balances"""
        with self.lock:
            return dict(self._balances)

    @property
    def daily_withdrawal_limit(self) -> Decimal:
        return self._daily_withdrawal_limit

    @property
    def daily_withdrawal_used(self) -> Decimal:
        with self.lock:
            self._reset_daily_limit_if_needed()
            return self._daily_withdrawal_used

    @property
    def remaining_daily_limit(self) -> Decimal:
        with self.lock:
            self._reset_daily_limit_if_needed()
            return self._daily_withdrawal_limit - self._daily_withdrawal_used

    @property
    def last_reset_date(self) -> date:
        return self._last_reset_date

    @property
    def history(self) -> List[Transaction]:
        """Snapshot of the transaction history, oldest first"""
        with self.lock:
            return list(self._history)

    @property
    def age_in_days(self) -> int:
        return (self._clock().date() - self.created_at.date()).days

    def supports(self, currency: CurrencyLike) -> bool:
        return Currency.from_code(currency) in self._supported

    def balance(self, currency: CurrencyLike = BASE_CURRENCY) -> Decimal:
        """Balance in one currency; zero for currencies the account does not carry"""
        resolved = Currency.from_code(currency)
        with self.lock:
            return self._balances.get(resolved, Decimal('0'))

    def has_enough_funds(self, amount: AmountLike, currency: CurrencyLike) -> bool:
        return self.balance(currency) >= to_decimal(amount)

    def total_balance_in_base(self, rates: Mapping) -> Decimal:
        """
        Sum of all balances valued in the base currency

        Raises:
            ExchangeError: If a non-zero balance has no rate in the table
        """
        with self.lock:
            return sum(
                (to_base(amount, currency, rates) for currency, amount in self._balances.items() if amount),
                Decimal('0')
            )

    def recent_transactions(self, limit: int = 10) -> List[Transaction]:
        with self.lock:
            return self._history.recent(limit)

    def statement(self, start: date, end: date, rates: Mapping) -> Statement:
        with self.lock:
            return self._history.statement(start, end, rates, account_number=self._account_number)

    def to_dict(self) -> Dict[str, Any]:
        """Summary for display layers; never includes credential material"""
        with self.lock:
            return {
                "account_number": self._account_number,
                "owner_name": self._owner_name,
                "state": self._state.value,
                "balances": {c.code: str(quantize(a, c)) for c, a in sorted(self._balances.items(), key=lambda i: i[0].code)},
                "daily_withdrawal_limit": str(self._daily_withdrawal_limit),
                "daily_withdrawal_used": str(self._daily_withdrawal_used),
                "created_at": self.created_at.isoformat(),
                "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
                "transaction_count": len(self._history)
            }

    # Internal helpers, called with self.lock held

    def _record(self, kind: TransactionKind, amount: Decimal, currency: Currency,
                description: str, metadata: Optional[Dict[str, Any]] = None) -> Transaction:
        return self._history.record(kind, amount, currency, description, self._clock(), metadata)

    def _reset_daily_limit_if_needed(self) -> None:
        today = self._clock().date()
        if today > self._last_reset_date:
            self._daily_withdrawal_used = Decimal('0')
            self._last_reset_date = today

    def _require_active(self) -> None:
        if not self.is_active:
            raise OperationRejected("Account is inactive")

    def _require_currency(self, currency: CurrencyLike) -> Currency:
        resolved = Currency.from_code(currency)
        if resolved is None or resolved not in self._supported:
            code = resolved.code if resolved else currency
            raise OperationRejected(f"Unsupported currency: {code}")
        return resolved

    def _require_amount(self, amount: AmountLike) -> Decimal:
        try:
            return to_decimal(amount)
        except ValueError:
            raise OperationRejected(f"Invalid amount: {amount!r}")

    def prepare_credit(self, amount: AmountLike, currency: CurrencyLike) -> PendingCredit:
        """
        Validate a deposit without applying it

        Raises:
            OperationRejected: If the deposit would be refused
        """
        self._require_active()
        resolved = self._require_currency(currency)
        value = self._require_amount(amount)
        if value < self._minimum_deposit:
            raise OperationRejected(f"Minimum deposit is {self._minimum_deposit} {resolved.code}")
        return PendingCredit(resolved, value)

    def apply_credit(self, credit: PendingCredit) -> None:
        self._balances[credit.currency] += credit.amount

    def prepare_debit(self, amount: AmountLike, currency: CurrencyLike, rates: Mapping) -> PendingDebit:
        """
        Validate a withdrawal against state, daily limit and funds

        Raises:
            OperationRejected: If the withdrawal would be refused
        """
        self._require_active()
        resolved = self._require_currency(currency)
        value = self._require_amount(amount)
        if value <= 0:
            raise OperationRejected("Amount must be positive")

        self._reset_daily_limit_if_needed()

        try:
            amount_in_base = to_base(value, resolved, rates)
        except ExchangeError as e:
            raise OperationRejected(str(e))

        if self._daily_withdrawal_used + amount_in_base > self._daily_withdrawal_limit:
            remaining = self._daily_withdrawal_limit - self._daily_withdrawal_used
            raise OperationRejected(
                f"Daily withdrawal limit exceeded. Remaining today: "
                f"{quantize(remaining, BASE_CURRENCY)} {BASE_CURRENCY.code}"
            )

        available = self._balances[resolved]
        if available < value:
            raise OperationRejected(
                f"Insufficient funds. Available {resolved.code}: {quantize(available, resolved)}"
            )

        return PendingDebit(resolved, value, amount_in_base)

    def apply_debit(self, debit: PendingDebit) -> None:
        self._balances[debit.currency] -= debit.amount
        self._daily_withdrawal_used += debit.amount_in_base

    def release_debit(self, debit: PendingDebit) -> None:
        """Undo an applied debit: restore the balance and the daily limit usage"""
        self._balances[debit.currency] += debit.amount
        self._daily_withdrawal_used = max(Decimal('0'), self._daily_withdrawal_used - debit.amount_in_base)

    def record_transfer(self, kind: TransactionKind, amount: Decimal, currency: Currency,
                        counterpart: str, description: str) -> Transaction:
        direction = "to" if kind == TransactionKind.TRANSFER_OUT else "from"
        text = f"Transfer {direction} {counterpart}"
        if description:
            text = f"{text} :: {description}"
        return self._record(kind, amount, currency, text, {"counterpart": counterpart, "note": description})

    def _reject(self, action: str, reason: str, **extra) -> OperationResult:
        log_action(
            logger, "info", f"{action} rejected: {reason}",
            account=self._account_number, action=action, extra=extra or None
        )
        return OperationResult.fail(reason)

    # Money-moving operations

    def deposit(self, amount: AmountLike, currency: CurrencyLike) -> OperationResult:
        """
        Deposit money in a supported currency.

        Rejected when the account is inactive, the currency is not carried,
        or the amount is below the minimum deposit.
        """
        with self.lock:
            try:
                credit = self.prepare_credit(amount, currency)
            except OperationRejected as e:
                return self._reject("deposit", e.reason, currency=str(currency))

            self.apply_credit(credit)
            transaction = self._record(
                TransactionKind.DEPOSIT, credit.amount, credit.currency,
                f"Deposit to account {self._account_number}"
            )
            new_balance = self._balances[credit.currency]

        log_action(
            logger, "info", "Deposit completed",
            account=self._account_number, action="deposit",
            resource=f"transaction:{transaction.id}",
            extra={"amount": str(credit.amount), "currency": credit.currency.code}
        )
        return OperationResult.ok(
            f"Deposit successful. {credit.currency.code} balance: {quantize(new_balance, credit.currency)}",
            transaction
        )

    def withdraw(self, amount: AmountLike, currency: CurrencyLike, rates: Mapping) -> OperationResult:
        """
        Withdraw money, subject to the daily limit and available funds.

        Args:
            amount: Amount in ``currency``
            currency: Currency to withdraw
            rates: Base-currency rate table used to value the withdrawal
                against the daily limit

        Returns:
            OperationResult; on failure nothing has changed
        """
        with self.lock:
            try:
                debit = self.prepare_debit(amount, currency, rates)
            except OperationRejected as e:
                return self._reject("withdraw", e.reason, currency=str(currency))

            self.apply_debit(debit)
            transaction = self._record(
                TransactionKind.WITHDRAWAL, debit.amount, debit.currency,
                f"Withdrawal from account {self._account_number}",
                {"amount_in_base": debit.amount_in_base}
            )
            new_balance = self._balances[debit.currency]
            used = self._daily_withdrawal_used

        log_action(
            logger, "info", "Withdrawal completed",
            account=self._account_number, action="withdraw",
            resource=f"transaction:{transaction.id}",
            extra={
                "amount": str(debit.amount),
                "currency": debit.currency.code,
                "daily_used": str(used),
                "daily_limit": str(self._daily_withdrawal_limit)
            }
        )
        return OperationResult.ok(
            f"Withdrawal successful. {debit.currency.code} balance: {quantize(new_balance, debit.currency)}",
            transaction
        )

    def transfer_to(self, target: 'Account', amount: AmountLike, currency: CurrencyLike,
                    rates: Mapping, description: str = "") -> OperationResult:
        """Transfer money to another account; see TransferCoordinator"""
        return TransferCoordinator().transfer(self, target, amount, currency, rates, description)

    def exchange_currency(self, from_currency: CurrencyLike, to_currency: CurrencyLike,
                          amount: AmountLike, rates: Mapping) -> OperationResult:
        """
        Exchange money between two currencies held by this account.

        The converted amount is bridged through the base currency when
        neither side is the base currency, and a fixed commission is
        deducted from the destination amount.
        """
        with self.lock:
            try:
                self._require_active()
                source = self._require_currency(from_currency)
                target = self._require_currency(to_currency)
                if source == target:
                    raise OperationRejected("Cannot exchange a currency for itself")
                value = self._require_amount(amount)
                if value <= 0:
                    raise OperationRejected("Amount must be positive")
                available = self._balances[source]
                if available < value:
                    raise OperationRejected(
                        f"Insufficient funds in {source.code}. Available: {quantize(available, source)}"
                    )
                try:
                    quote = quote_exchange(value, source, target, rates)
                except ExchangeError as e:
                    raise OperationRejected(str(e))
            except OperationRejected as e:
                return self._reject("exchange", e.reason, from_currency=str(from_currency),
                                    to_currency=str(to_currency))

            self._balances[source] -= quote.amount
            self._balances[target] += quote.received
            transaction = self._record(
                TransactionKind.EXCHANGE, quote.amount, source, quote.describe(),
                {
                    "to_currency": target.code,
                    "gross": quote.gross,
                    "commission": quote.commission,
                    "received": quote.received
                }
            )

        log_action(
            logger, "info", "Currency exchange completed",
            account=self._account_number, action="exchange",
            resource=f"transaction:{transaction.id}",
            extra={
                "from": f"{quote.amount} {source.code}",
                "to": f"{quote.received} {target.code}",
                "commission": str(quote.commission)
            }
        )
        return OperationResult.ok(
            f"Exchange successful. Received {quantize(quote.received, target)} {target.code}",
            transaction,
            quote=quote
        )

    def calculate_interest(self, annual_rate_percent: AmountLike) -> List[Transaction]:
        """
        Accrue one day of interest on every positive balance.

        The balance always grows by the computed interest; an INTEREST
        transaction is only recorded when the interest exceeds the logging
        threshold (0.01 by default).

        Args:
            annual_rate_percent: Annual rate in percent, e.g. 5 for 5%

        Returns:
            INTEREST transactions recorded by this call; empty when the
            account is inactive or the rate is rejected
        """
        recorded: List[Transaction] = []
        with self.lock:
            if not self.is_active:
                return recorded

            try:
                rate = to_decimal(annual_rate_percent)
            except ValueError:
                self._reject("calculate_interest", "Invalid interest rate", rate=str(annual_rate_percent))
                return recorded
            if rate < 0:
                self._reject("calculate_interest", "Annual interest rate cannot be negative", rate=str(rate))
                return recorded

            daily_rate = rate / DAYS_PER_YEAR / Decimal('100')
            for currency in sorted(self._balances, key=lambda c: c.code):
                balance = self._balances[currency]
                if balance <= 0:
                    continue
                interest = balance * daily_rate
                self._balances[currency] = balance + interest
                if interest > self._interest_log_threshold:
                    recorded.append(self._record(
                        TransactionKind.INTEREST, interest, currency,
                        f"Interest at {rate}% per year",
                        {"annual_rate_percent": rate}
                    ))

        if recorded:
            log_action(
                logger, "info", "Interest accrued",
                account=self._account_number, action="calculate_interest",
                extra={t.currency.code: str(t.amount) for t in recorded}
            )
        return recorded

    # Lifecycle

    def deactivate(self) -> bool:
        """Deactivate the account; returns False if it was already inactive"""
        with self.lock:
            if not self.is_active:
                return False
            self._state = AccountState.INACTIVE
            self._record(TransactionKind.ACTIVATION_CHANGE, Decimal('0'), BASE_CURRENCY,
                         "Account deactivated", {"state": AccountState.INACTIVE.value})
        log_action(logger, "info", "Account deactivated", account=self._account_number, action="deactivate")
        return True

    def reactivate(self) -> bool:
        """Reactivate the account; returns False if it was already active"""
        with self.lock:
            if self.is_active:
                return False
            self._state = AccountState.ACTIVE
            self._record(TransactionKind.ACTIVATION_CHANGE, Decimal('0'), BASE_CURRENCY,
                         "Account reactivated", {"state": AccountState.ACTIVE.value})
        log_action(logger, "info", "Account reactivated", account=self._account_number, action="reactivate")
        return True

    # Profile and credentials

    def verify_credential(self, credential: str) -> bool:
        if not isinstance(credential, str):
            return False
        candidate = _hash_credential(credential, self._credential_salt)
        return hmac.compare_digest(candidate, self._credential_hash)

    def change_credential(self, old_credential: str, new_credential: str) -> OperationResult:
        with self.lock:
            if not self.verify_credential(old_credential):
                return self._reject("change_credential", "Current credential is incorrect")
            try:
                validate_credential(new_credential, self._config.credential_min_length)
            except ValidationError as e:
                return self._reject("change_credential", f"New credential is invalid: {e.message}")

            self._credential_salt = secrets.token_hex(16)
            self._credential_hash = _hash_credential(new_credential, self._credential_salt)
            transaction = self._record(TransactionKind.PASSWORD_CHANGE, Decimal('0'), BASE_CURRENCY,
                                       "Credential changed")

        log_action(logger, "info", "Credential changed", account=self._account_number, action="change_credential")
        return OperationResult.ok("Credential changed", transaction)

    def rename_owner(self, owner_name: str) -> OperationResult:
        try:
            name = validate_owner_name(owner_name, self._config.owner_name_min_length)
        except ValidationError as e:
            return self._reject("rename_owner", e.message)
        with self.lock:
            self._owner_name = name
        return OperationResult.ok(f"Owner name updated to {name}")

    def set_daily_withdrawal_limit(self, limit: AmountLike) -> OperationResult:
        try:
            value = self._validate_daily_limit(limit)
        except ValidationError as e:
            return self._reject("set_daily_limit", e.message)
        with self.lock:
            self._daily_withdrawal_limit = value
        log_action(logger, "info", "Daily withdrawal limit changed", account=self._account_number,
                   action="set_daily_limit", extra={"limit": str(value)})
        return OperationResult.ok(f"Daily withdrawal limit set to {quantize(value, BASE_CURRENCY)} {BASE_CURRENCY.code}")

    def record_login(self) -> None:
        with self.lock:
            self.last_login_at = self._clock()
