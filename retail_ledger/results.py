"""
Operation outcomes and validation errors shared by the ledger modules.

Money-moving operations never raise for business rejections; they return an
OperationResult that callers must check before assuming funds moved.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .accounts import Account
    from .transactions import Transaction


class ValidationError(ValueError):
    """Raised when account construction input is invalid"""

    def __init__(self, field_name: str, message: str):
        super().__init__(message)
        self.field_name = field_name
        self.message = message


class OperationRejected(Exception):
    """Internal signal for a business rejection; converted to OperationResult"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a ledger operation; truthy on success"""
    success: bool
    message: str
    transaction: Optional['Transaction'] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str, transaction: Optional['Transaction'] = None, **details) -> 'OperationResult':
        return cls(True, message, transaction, details)

    @classmethod
    def fail(cls, message: str, **details) -> 'OperationResult':
        return cls(False, message, None, details)


@dataclass(frozen=True)
class OpenResult:
    """Outcome of opening an account: either an account or a validation error"""
    account: Optional['Account'] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.account is not None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> 'Account':
        """Return the account or raise the validation error"""
        if self.account is None:
            raise self.error
        return self.account
