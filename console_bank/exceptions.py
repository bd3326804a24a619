"""
Domain exceptions for the ledger.

Every error is recoverable at the shell boundary: it is reported to the
user and the session continues.

Exception hierarchy:
    BankError (base)
    ├── AccountNotFoundError  : lookup miss on an account id
    ├── InsufficientFundsError: withdraw/transfer larger than the balance
    ├── InvalidAmountError    : negative, NaN, infinite or non-numeric amount
    ├── InvalidOwnerError     : owner name that cannot be persisted
    └── FormatError           : malformed persisted data
"""

from decimal import Decimal
from typing import Any, Optional


class BankError(Exception):
    """Base exception for all ledger domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


class AccountNotFoundError(BankError):
    """Raised when an account id does not exist in the ledger."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class InsufficientFundsError(BankError):
    """
    Raised when a withdraw or transfer exceeds the current balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested: The amount the caller tried to move.
        available: The balance of the account at the time.
    """

    def __init__(self, account_id: int, requested: Decimal, available: Decimal):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"requested {requested}, available {available}"
        )


class InvalidAmountError(BankError):
    """Raised when an amount is not a finite, non-negative number."""

    def __init__(self, amount: Any):
        self.amount = amount
        super().__init__(f"Invalid amount: {amount!r}")


class InvalidOwnerError(BankError):
    """Raised when an owner name is blank or contains reserved characters."""

    def __init__(self, owner: Any, reason: str = "contains reserved characters"):
        self.owner = owner
        super().__init__(f"Invalid owner name {owner!r}: {reason}")


class FormatError(BankError):
    """Raised when persisted ledger data cannot be parsed."""

    def __init__(self, detail: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            detail = f"line {line_number}: {detail}"
        super().__init__(detail)
