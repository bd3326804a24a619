"""
Account Module

An account owns its balance and an append-only transaction history.
Every mutation updates the balance and records exactly one Transaction,
so the balance always equals the signed sum of the history.
"""

from decimal import Decimal, InvalidOperation, getcontext
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import FormatError, InvalidOwnerError
from .transactions import (
    Transaction, TransactionType, AmountLike, to_amount, current_timestamp
)


HEADER_SEPARATOR = ";"
TRANSACTION_PREFIX = "T:"
END_MARKER = "END"

RESERVED_OWNER_CHARACTERS = (HEADER_SEPARATOR, "|", "\n", "\r")


def validate_owner(owner: str) -> str:
    """Reject owner names that cannot be written to the ledger file"""
    if not isinstance(owner, str):
        raise InvalidOwnerError(owner, "must be a string")
    for char in RESERVED_OWNER_CHARACTERS:
        if char in owner:
            raise InvalidOwnerError(owner)
    return owner


@dataclass
class Account:
    """
    One holder's balance and transaction history
    """
    id: int
    owner: str
    balance: Decimal = Decimal('0')
    history: List[Transaction] = field(default_factory=list)

    def __post_init__(self):
        validate_owner(self.owner)
        if not isinstance(self.balance, Decimal):
            self.balance = Decimal(str(self.balance))

    def _record(
        self,
        transaction_type: TransactionType,
        amount: Decimal,
        timestamp: Optional[str]
    ) -> Transaction:
        transaction = Transaction(
            timestamp=timestamp or current_timestamp(),
            type=transaction_type,
            amount=amount
        )
        self.balance += transaction.signed_amount
        self.history.append(transaction)
        return transaction

    def deposit(self, amount: AmountLike, timestamp: Optional[str] = None) -> Transaction:
        """
        Add funds to the account

        Raises:
            InvalidAmountError: If amount is negative, NaN or infinite
        """
        return self._record(TransactionType.DEPOSIT, to_amount(amount), timestamp)

    def withdraw(self, amount: AmountLike, timestamp: Optional[str] = None) -> bool:
        """
        Remove funds if the balance covers them.

        Returns:
            False without touching balance or history when amount > balance
        """
        amount = to_amount(amount)
        if amount > self.balance:
            return False
        self._record(TransactionType.WITHDRAW, amount, timestamp)
        return True

    def transfer_out(self, amount: AmountLike, timestamp: Optional[str] = None) -> Transaction:
        """Outgoing transfer leg. Performs no funds check; the Ledger does."""
        return self._record(TransactionType.TRANSFER_OUT, to_amount(amount), timestamp)

    def transfer_in(self, amount: AmountLike, timestamp: Optional[str] = None) -> Transaction:
        """Incoming transfer leg"""
        return self._record(TransactionType.TRANSFER_IN, to_amount(amount), timestamp)

    def computed_balance(self) -> Decimal:
        """Signed sum of every transaction in the history"""
        return sum((t.signed_amount for t in self.history), Decimal('0'))

    def verify(self) -> None:
        """
        Check that the stored balance matches the history.

        Raises:
            FormatError: If balance and history disagree
        """
        expected = self.computed_balance()
        if self.balance != expected:
            raise FormatError(
                f"Account {self.id} balance {self.balance} does not match "
                f"history total {expected}"
            )

    def encode(self) -> str:
        """
        Render the account as a text block: an ``id;owner;balance`` header,
        one ``T:`` line per transaction and a closing ``END`` line.
        """
        lines = [HEADER_SEPARATOR.join([str(self.id), self.owner, str(self.balance)])]
        lines.extend(TRANSACTION_PREFIX + t.encode() for t in self.history)
        lines.append(END_MARKER)
        return "\n".join(lines) + "\n"

    @classmethod
    def decode(
        cls,
        header: str,
        lines: Iterator[str],
        verify_balance: bool = True
    ) -> 'Account':
        """
        Parse a header line and consume ``lines`` up to and including ``END``.

        Lines that are neither ``T:`` entries nor ``END`` are skipped.

        Raises:
            FormatError: On a malformed header or transaction, a missing
                ``END`` marker, or (with verify_balance) a balance mismatch
        """
        fields = header.split(HEADER_SEPARATOR)
        if len(fields) != 3:
            raise FormatError(f"Account header needs 3 fields, got {len(fields)}: {header!r}")

        id_text, owner, balance_text = fields
        try:
            account_id = int(id_text)
        except ValueError:
            raise FormatError(f"Invalid account id {id_text!r}")

        balance = _parse_balance(balance_text)
        try:
            account = cls(id=account_id, owner=owner, balance=balance)
        except InvalidOwnerError as e:
            raise FormatError(e.detail)

        for line in lines:
            if line == END_MARKER:
                break
            if line.startswith(TRANSACTION_PREFIX):
                account.history.append(Transaction.decode(line[len(TRANSACTION_PREFIX):]))
        else:
            raise FormatError(f"Account {account_id} block is missing the {END_MARKER} marker")

        if verify_balance:
            account.verify()
        return account

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured storage"""
        return {
            "id": self.id,
            "owner": self.owner,
            "balance": str(self.balance),
            "history": [t.to_dict() for t in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], verify_balance: bool = True) -> 'Account':
        """Create instance from dictionary"""
        try:
            account_id = data["id"]
            owner = data["owner"]
            balance = _parse_balance(str(data["balance"]))
            history = [Transaction.from_dict(t) for t in data.get("history", [])]
        except KeyError as e:
            raise FormatError(f"Account record missing field {e}")
        except TypeError as e:
            raise FormatError(f"Invalid account record: {e}")

        if isinstance(account_id, bool) or not isinstance(account_id, int):
            raise FormatError(f"Invalid account id {account_id!r}")

        try:
            account = cls(id=account_id, owner=owner, balance=balance, history=history)
        except InvalidOwnerError as e:
            raise FormatError(e.detail)

        if verify_balance:
            account.verify()
        return account


def _parse_balance(text: str) -> Decimal:
    try:
        balance = Decimal(text.strip())
    except InvalidOperation:
        raise FormatError(f"Invalid balance {text!r}")
    if not balance.is_finite() or (balance and balance.adjusted() >= getcontext().prec):
        raise FormatError(f"Invalid balance {text!r}")
    return balance
