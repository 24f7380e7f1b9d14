"""
Transaction Log Module

Immutable transaction records and the bounded, append-only log each account
keeps of its completed operations. The log also produces date-range
statements with inbound/outbound totals in the base currency.
"""

from collections import deque
from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterator, List, Mapping, Optional
from enum import Enum
from types import MappingProxyType
import uuid

from .currency import Currency, Money, BASE_CURRENCY, quantize
from .exchange import to_base


MAX_HISTORY_CAPACITY = 1000


class TransactionKind(Enum):
    """Kinds of entries recorded in an account's history"""
    CREATION = "creation"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    EXCHANGE = "exchange"
    INTEREST = "interest"
    PASSWORD_CHANGE = "password_change"
    ACTIVATION_CHANGE = "activation_change"


# Kinds counted as money entering / leaving the account on statements
INBOUND_KINDS = frozenset({
    TransactionKind.DEPOSIT, TransactionKind.TRANSFER_IN, TransactionKind.INTEREST
})
OUTBOUND_KINDS = frozenset({
    TransactionKind.WITHDRAWAL, TransactionKind.TRANSFER_OUT, TransactionKind.EXCHANGE
})


@dataclass(frozen=True)
class Transaction:
    """
    A completed operation on one account.

    Never mutated after creation; ``metadata`` is exposed read-only.
    """
    id: str
    kind: TransactionKind
    amount: Decimal
    currency: Currency
    timestamp: datetime
    description: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'metadata', MappingProxyType(dict(self.metadata)))

    @property
    def money(self) -> Money:
        return Money(self.amount, self.currency)

    @property
    def is_inbound(self) -> bool:
        return self.kind in INBOUND_KINDS

    @property
    def is_outbound(self) -> bool:
        return self.kind in OUTBOUND_KINDS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary"""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "amount": str(self.amount),
            "currency": self.currency.code,
            "timestamp": self.timestamp.isoformat(),
            "description": self.description,
            "metadata": {k: str(v) if isinstance(v, Decimal) else v for k, v in self.metadata.items()}
        }

    def __str__(self) -> str:
        return (
            f"{self.timestamp.date().isoformat()} | {self.kind.name:<18} | "
            f"{quantize(self.amount, self.currency):>12} {self.currency.code:<4}| "
            f"{self.description} | {self.id[:8]}"
        )


@dataclass(frozen=True)
class Statement:
    """Transactions within a date range with base-currency totals"""
    start: date
    end: date
    entries: List[Transaction]
    total_in: Decimal
    total_out: Decimal
    currency: Currency = BASE_CURRENCY
    account_number: Optional[str] = None

    @property
    def net(self) -> Decimal:
        return self.total_in - self.total_out

    def render(self) -> str:
        """Plain-text rendering for display layers"""
        period = f"({self.start.isoformat()} - {self.end.isoformat()})"
        header = f"STATEMENT {self.account_number} {period}" if self.account_number else f"STATEMENT {period}"
        lines = [header, "=" * 60]
        lines.extend(str(entry) for entry in self.entries)
        lines.append("=" * 60)
        code = self.currency.code
        lines.append(f"TOTAL IN  :: {quantize(self.total_in, self.currency):>12} {code}")
        lines.append(f"TOTAL OUT :: {quantize(self.total_out, self.currency):>12} {code}")
        lines.append(f"NET       :: {quantize(self.net, self.currency):>12} {code}")
        return "\n".join(lines)


class TransactionLog:
    """
    Append-only transaction history with a hard capacity.

    Once full, each append evicts the oldest entry. Entries are never edited
    or removed individually. Not thread-safe on its own; the owning account
    serializes access.
    """

    def __init__(self, capacity: int = MAX_HISTORY_CAPACITY):
        if not 0 < capacity <= MAX_HISTORY_CAPACITY:
            raise ValueError(f"History capacity must be between 1 and {MAX_HISTORY_CAPACITY}")
        self.capacity = capacity
        self._entries: Deque[Transaction] = deque(maxlen=capacity)

    def record(
        self,
        kind: TransactionKind,
        amount: Decimal,
        currency: Currency,
        description: str,
        timestamp: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Transaction:
        """Create a transaction and append it to the log"""
        transaction = Transaction(
            id=str(uuid.uuid4()),
            kind=kind,
            amount=amount,
            currency=currency,
            timestamp=timestamp or datetime.now(timezone.utc),
            description=description,
            metadata=metadata or {}
        )
        self._entries.append(transaction)
        return transaction

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._entries))

    @property
    def is_full(self) -> bool:
        return len(self._entries) == self.capacity

    def recent(self, limit: int) -> List[Transaction]:
        """The most recent ``limit`` entries, oldest first"""
        if limit <= 0:
            return []
        entries = list(self._entries)
        return entries[-limit:]

    def between(self, start: date, end: date) -> List[Transaction]:
        """Entries whose calendar date falls within [start, end]"""
        return [t for t in self._entries if start <= t.timestamp.date() <= end]

    def statement(self, start: date, end: date, rates: Mapping,
                  account_number: Optional[str] = None) -> Statement:
        """
        Build a statement for a date range.

        Amounts are converted to the base currency with the supplied rate
        table and bucketed by kind into inbound and outbound totals.

        Raises:
            ExchangeError: If an entry's currency has no rate in the table
        """
        if start > end:
            raise ValueError("Statement start date must not be after end date")

        entries = self.between(start, end)
        total_in = Decimal('0')
        total_out = Decimal('0')

        for entry in entries:
            if entry.is_inbound:
                total_in += to_base(entry.amount, entry.currency, rates)
            elif entry.is_outbound:
                total_out += to_base(entry.amount, entry.currency, rates)

        return Statement(
            start=start,
            end=end,
            entries=entries,
            total_in=total_in,
            total_out=total_out,
            account_number=account_number
        )
