"""
Transfer Coordinator Module

Moves money between two accounts: debit the source through the withdrawal
rules, credit the target through the deposit rules, and return the funds to
the source when the credit is refused. The two steps are not atomic across
accounts; both account locks are held for the whole transfer so no other
operation observes the intermediate state.
"""

from contextlib import ExitStack, contextmanager
from typing import Iterator, Mapping, TYPE_CHECKING

from .currency import AmountLike, CurrencyLike, quantize
from .results import OperationRejected, OperationResult
from .transactions import TransactionKind
from .logging_config import get_logger, log_action

if TYPE_CHECKING:
    from .accounts import Account, PendingDebit


@contextmanager
def locked_pair(first: 'Account', second: 'Account') -> Iterator[None]:
    """
    Hold the locks of two accounts.

    Locks are always taken in ascending account-number order, whatever the
    direction of the transfer, so two opposite transfers cannot deadlock.
    """
    ordered = sorted({first.account_number: first, second.account_number: second}.items())
    with ExitStack() as stack:
        for _, account in ordered:
            stack.enter_context(account.lock)
        yield


class TransferCoordinator:
    """Orchestrates withdraw-then-deposit across two accounts"""

    def __init__(self):
        self.logger = get_logger("retail_ledger.transfers")

    def transfer(self, source: 'Account', target: 'Account', amount: AmountLike,
                 currency: CurrencyLike, rates: Mapping, description: str = "") -> OperationResult:
        """
        Transfer ``amount`` of ``currency`` from source to target.

        On success TRANSFER_OUT is recorded on the source and TRANSFER_IN on
        the target. When the target refuses the credit, the source balance
        and its daily withdrawal usage are restored and no transfer entry is
        recorded on either side.

        Args:
            source: Account debited
            target: Account credited (supplied by the caller's registry)
            amount: Amount in ``currency``
            currency: Currency moved
            rates: Base-currency rate table for the source's daily limit
            description: Free text stored on both transfer entries

        Returns:
            OperationResult
        """
        if target is source or target.account_number == source.account_number:
            return self._reject(source, target, "Cannot transfer to the same account")

        with locked_pair(source, target):
            if not source.is_active or not target.is_active:
                return self._reject(source, target, "One of the accounts is inactive")

            try:
                debit = source.prepare_debit(amount, currency, rates)
            except OperationRejected as e:
                return self._reject(source, target, e.reason)
            source.apply_debit(debit)

            try:
                credit = target.prepare_credit(debit.amount, debit.currency)
            except OperationRejected as e:
                return self._compensate(source, target, debit, e.reason)
            target.apply_credit(credit)

            outgoing = source.record_transfer(
                TransactionKind.TRANSFER_OUT, debit.amount, debit.currency,
                target.account_number, description
            )
            target.record_transfer(
                TransactionKind.TRANSFER_IN, credit.amount, credit.currency,
                source.account_number, description
            )

        log_action(
            self.logger, "info", "Transfer completed",
            account=source.account_number, action="transfer",
            resource=f"transaction:{outgoing.id}",
            extra={
                "target": target.account_number,
                "amount": str(debit.amount),
                "currency": debit.currency.code
            }
        )
        return OperationResult.ok(
            f"Transfer of {quantize(debit.amount, debit.currency)} {debit.currency.code} "
            f"to account {target.account_number} successful",
            outgoing
        )

    def _compensate(self, source: 'Account', target: 'Account', debit: 'PendingDebit', reason: str) -> OperationResult:
        """Return a debited amount to the source after the target refused it"""
        try:
            source.release_debit(debit)
        except Exception:
            self.logger.critical(
                "Transfer compensation failed: %s %s debited from %s and not credited to %s",
                debit.amount, debit.currency.code, source.account_number, target.account_number,
                exc_info=True,
                extra={"action": "transfer_compensation_failed", "account": source.account_number}
            )
            return OperationResult.fail(
                f"Transfer failed ({reason}) and the funds could not be returned to the source account",
                compensated=False
            )

        log_action(
            self.logger, "warning", f"Transfer failed, funds returned to source: {reason}",
            account=source.account_number, action="transfer_compensated",
            extra={
                "target": target.account_number,
                "amount": str(debit.amount),
                "currency": debit.currency.code
            }
        )
        return OperationResult.fail(f"Transfer failed ({reason}). The amount was returned", compensated=True)

    def _reject(self, source: 'Account', target: 'Account', reason: str) -> OperationResult:
        log_action(
            self.logger, "info", f"Transfer rejected: {reason}",
            account=source.account_number, action="transfer",
            extra={"target": target.account_number}
        )
        return OperationResult.fail(reason)
