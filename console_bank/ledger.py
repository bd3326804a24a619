"""
Ledger Engine

Owns every account, assigns ids, performs cross-account transfers and
persists the whole collection. Single-threaded: each operation runs to
completion before the next one starts.
"""

from decimal import Decimal
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .accounts import Account, validate_owner
from .exceptions import AccountNotFoundError, InsufficientFundsError, InvalidOwnerError
from .logging_config import get_logger, log_action
from .storage import LedgerCodec, TextLedgerCodec, read_text, write_atomic
from .transactions import AmountLike, Transaction, to_amount, current_timestamp


@dataclass(frozen=True)
class AccountSummary:
    """Read-only view of an account for listings"""
    id: int
    owner: str
    balance: Decimal


class Ledger:
    """
    Collection of accounts keyed by id, kept in creation order.
    ``next_id`` is always greater than every id ever issued or loaded.
    """

    def __init__(
        self,
        codec: Optional[LedgerCodec] = None,
        clock: Callable[[], str] = current_timestamp,
        verify_balances: bool = True
    ):
        self.codec = codec or TextLedgerCodec()
        self.clock = clock
        self.verify_balances = verify_balances
        self._accounts: Dict[int, Account] = {}
        self._next_id = 1
        self.logger = get_logger("console_bank.ledger")

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def accounts(self) -> List[Account]:
        """Accounts in insertion order"""
        return list(self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._accounts

    def create_account(self, owner: str) -> int:
        """
        Open a zero-balance account for ``owner``

        Returns:
            The new account id

        Raises:
            InvalidOwnerError: If the name is blank or has reserved characters
        """
        validate_owner(owner)
        if not owner.strip():
            raise InvalidOwnerError(owner, "must not be blank")

        account_id = self._next_id
        self._next_id += 1
        self._accounts[account_id] = Account(id=account_id, owner=owner)

        log_action(
            self.logger, "info", f"Created account {account_id}",
            action="account_created", resource=f"account:{account_id}",
            extra={"owner": owner}
        )
        return account_id

    def find_account(self, account_id: int) -> Optional[Account]:
        """Return the account, or None if no such id exists"""
        return self._accounts.get(account_id)

    def get_account(self, account_id: int) -> Account:
        """
        Raises:
            AccountNotFoundError: If no such id exists
        """
        account = self.find_account(account_id)
        if account is None:
            log_action(
                self.logger, "warning", f"Account {account_id} not found",
                action="lookup", resource=f"account:{account_id}"
            )
            raise AccountNotFoundError(account_id)
        return account

    def deposit(self, account_id: int, amount: AmountLike) -> Transaction:
        account = self.get_account(account_id)
        transaction = account.deposit(amount, timestamp=self.clock())

        log_action(
            self.logger, "info", f"Deposited {transaction.amount} to account {account_id}",
            action="deposit", resource=f"account:{account_id}",
            extra={"amount": str(transaction.amount), "balance": str(account.balance)}
        )
        return transaction

    def withdraw(self, account_id: int, amount: AmountLike) -> Transaction:
        """
        Raises:
            AccountNotFoundError: If no such id exists
            InsufficientFundsError: If amount exceeds the balance
        """
        account = self.get_account(account_id)
        amount = to_amount(amount)

        if not account.withdraw(amount, timestamp=self.clock()):
            log_action(
                self.logger, "warning", f"Withdrawal from account {account_id} rejected",
                action="withdraw", resource=f"account:{account_id}",
                extra={"amount": str(amount), "balance": str(account.balance)}
            )
            raise InsufficientFundsError(account_id, amount, account.balance)

        log_action(
            self.logger, "info", f"Withdrew {amount} from account {account_id}",
            action="withdraw", resource=f"account:{account_id}",
            extra={"amount": str(amount), "balance": str(account.balance)}
        )
        return account.history[-1]

    def transfer(self, from_id: int, to_id: int, amount: AmountLike) -> None:
        """
        Move funds between two accounts.

        The funds check happens before either leg is applied, so a rejected
        transfer leaves both accounts untouched.

        Raises:
            AccountNotFoundError: If either id does not exist
            InsufficientFundsError: If the source balance is below amount
            ValueError: If both ids name the same account
        """
        source = self.get_account(from_id)
        destination = self.get_account(to_id)
        amount = to_amount(amount)

        if from_id == to_id:
            raise ValueError("Cannot transfer an account to itself")

        if source.balance < amount:
            log_action(
                self.logger, "warning", f"Transfer from account {from_id} rejected",
                action="transfer", resource=f"account:{from_id}",
                extra={"to": to_id, "amount": str(amount), "balance": str(source.balance)}
            )
            raise InsufficientFundsError(from_id, amount, source.balance)

        timestamp = self.clock()
        source.transfer_out(amount, timestamp=timestamp)
        destination.transfer_in(amount, timestamp=timestamp)

        log_action(
            self.logger, "info", f"Transferred {amount} from account {from_id} to {to_id}",
            action="transfer", resource=f"account:{from_id}",
            extra={"to": to_id, "amount": str(amount)}
        )

    def list_accounts(self) -> List[AccountSummary]:
        return [
            AccountSummary(id=a.id, owner=a.owner, balance=a.balance)
            for a in self._accounts.values()
        ]

    def history(self, account_id: int) -> List[Transaction]:
        """Copy of the account's transactions, oldest first"""
        return list(self.get_account(account_id).history)

    def total_balance(self) -> Decimal:
        return sum((a.balance for a in self._accounts.values()), Decimal('0'))

    def save(self, path: Union[str, Path]) -> None:
        """
        Overwrite ``path`` with every account.

        Raises:
            OSError: If the file cannot be written; the old file is kept
        """
        text = self.codec.dumps(self._accounts.values(), self._next_id)
        try:
            write_atomic(path, text)
        except OSError:
            self.logger.exception(f"Failed to save ledger to {path}")
            raise

        log_action(
            self.logger, "info", f"Saved {len(self._accounts)} accounts",
            action="save", resource=str(path)
        )

    def load(self, path: Union[str, Path]) -> None:
        """
        Replace the accounts with the contents of ``path``.

        A missing file leaves the ledger as it is. The file is parsed in
        full before any state changes.

        Raises:
            FormatError: If the file is malformed
        """
        text = read_text(path)
        if text is None:
            log_action(
                self.logger, "info", f"No ledger file at {path}, starting empty",
                action="load", resource=str(path)
            )
            return

        snapshot = self.codec.loads(text, verify_balances=self.verify_balances)

        self._accounts = {account.id: account for account in snapshot.accounts}
        self._next_id = max(self._next_id, snapshot.next_id)

        log_action(
            self.logger, "info", f"Loaded {len(self._accounts)} accounts",
            action="load", resource=str(path), extra={"next_id": self._next_id}
        )
