"""
Interactive Shell

Menu-driven console front end. Gathers parameters, calls the Ledger and
prints its results; holds no state of its own beyond the ledger it drives.
"""

import argparse
import sys
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional, TextIO, Union

from .config import BankConfig, get_config
from .exceptions import (
    AccountNotFoundError, BankError, FormatError, InsufficientFundsError,
    InvalidAmountError
)
from .ledger import AccountSummary, Ledger
from .logging_config import get_logger, setup_logging
from .storage import get_codec
from .transactions import Transaction


MENU = (
    "\n=== Console Banking System ===\n"
    "1. Create Account\n"
    "2. Deposit\n"
    "3. Withdraw\n"
    "4. Transfer\n"
    "5. List Accounts\n"
    "6. Show History\n"
    "0. Exit\n"
)

logger = get_logger("console_bank.shell")


def format_money(amount: Decimal) -> str:
    return f"${amount:.2f}"


def format_summary(summary: AccountSummary) -> str:
    return f"ID: {summary.id} | Owner: {summary.owner} | Balance: {format_money(summary.balance)}"


def format_transaction(transaction: Transaction) -> str:
    return (
        f"{transaction.timestamp} | {transaction.type.value:<15} | "
        f"{format_money(transaction.amount)}"
    )


class BankShell:
    """Console menu loop over a Ledger"""

    def __init__(
        self,
        ledger: Ledger,
        path: Union[str, Path],
        input_func: Optional[Callable[[str], str]] = None,
        output: Optional[TextIO] = None,
        autosave: bool = False
    ):
        self.ledger = ledger
        self.path = path
        self.input_func = input_func or input
        self.output = output or sys.stdout
        self.autosave = autosave
        self.commands = {
            "1": self.create_account,
            "2": self.deposit,
            "3": self.withdraw,
            "4": self.transfer,
            "5": self.list_accounts,
            "6": self.show_history,
        }

    def say(self, message: str = "") -> None:
        print(message, file=self.output)

    def ask(self, prompt: str) -> str:
        return self.input_func(prompt).strip()

    def ask_id(self, prompt: str) -> int:
        return int(self.ask(prompt))

    def create_account(self) -> None:
        owner = self.ask("Owner name: ")
        self.ledger.create_account(owner)
        self.say("Account created successfully.")
        self._checkpoint()

    def deposit(self) -> None:
        account_id = self.ask_id("Account ID: ")
        amount = self.ask("Amount: ")
        self.ledger.deposit(account_id, amount)
        self.say("Deposit successful.")
        self._checkpoint()

    def withdraw(self) -> None:
        account_id = self.ask_id("Account ID: ")
        amount = self.ask("Amount: ")
        try:
            self.ledger.withdraw(account_id, amount)
        except InsufficientFundsError:
            self.say("Insufficient funds.")
            return
        self.say("Withdrawal successful.")
        self._checkpoint()

    def transfer(self) -> None:
        from_id = self.ask_id("From ID: ")
        to_id = self.ask_id("To ID: ")
        amount = self.ask("Amount: ")
        try:
            self.ledger.transfer(from_id, to_id, amount)
        except AccountNotFoundError:
            self.say("Invalid account ID.")
            return
        except InsufficientFundsError:
            self.say("Insufficient funds.")
            return
        except ValueError as e:
            self.say(f"{e}.")
            return
        self.say("Transfer completed.")
        self._checkpoint()

    def list_accounts(self) -> None:
        self.say("\n--- Accounts ---")
        for summary in self.ledger.list_accounts():
            self.say(format_summary(summary))

    def show_history(self) -> None:
        account_id = self.ask_id("Account ID: ")
        transactions = self.ledger.history(account_id)
        self.say("\n--- Transaction History ---")
        for transaction in transactions:
            self.say(format_transaction(transaction))

    def _checkpoint(self) -> None:
        if self.autosave:
            self.ledger.save(self.path)

    def run_command(self, choice: str) -> None:
        """Run one menu command, reporting recoverable errors"""
        command = self.commands.get(choice)
        if command is None:
            self.say("Invalid choice.")
            return

        try:
            command()
        except AccountNotFoundError:
            self.say("Account not found.")
        except InvalidAmountError as e:
            self.say(f"{e.detail}.")
        except BankError as e:
            self.say(f"Error: {e.detail}")
        except ValueError:
            self.say("Invalid input.")

    def run(self) -> None:
        """Loop until Exit or end of input, then save"""
        try:
            while True:
                self.say(MENU)
                try:
                    choice = self.ask("Select: ")
                    if choice == "0":
                        break
                    self.run_command(choice)
                except (EOFError, KeyboardInterrupt):
                    self.say()
                    break
        finally:
            self.ledger.save(self.path)
        self.say("Goodbye.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="console-bank",
        description="Single-user console ledger with file persistence"
    )
    parser.add_argument("--data-file", help="Ledger file to load and save")
    parser.add_argument("--format", choices=["text", "json"], help="Ledger file format")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    return parser


def main(argv: Optional[List[str]] = None, config: Optional[BankConfig] = None) -> int:
    """Console entry point"""
    args = build_parser().parse_args(argv)
    config = config or get_config()

    data_file = args.data_file or config.data_file
    storage_format = args.format or config.storage_format

    setup_logging(
        level=args.log_level or config.log_level,
        fmt=config.log_format,
        log_file=config.log_file
    )

    ledger = Ledger(
        codec=get_codec(storage_format),
        verify_balances=config.verify_balances
    )
    try:
        ledger.load(data_file)
    except FormatError as e:
        logger.error(f"Refusing to load {data_file}: {e.detail}")
        print(f"Cannot load {data_file}: {e.detail}", file=sys.stderr)
        return 1

    BankShell(ledger, data_file, autosave=config.autosave).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
