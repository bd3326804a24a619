"""
Storage Backend Module

Codecs that turn a set of accounts into file contents and back, plus the
write-then-replace file helpers used by the Ledger. All monetary values
are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Type, Union
import json
import os
import stat
import tempfile

from .accounts import Account
from .exceptions import FormatError


PathLike = Union[str, Path]

NEW_FILE_MODE = 0o666


@dataclass
class LedgerSnapshot:
    """Decoded file contents: accounts in file order and the next free id"""
    accounts: List[Account] = field(default_factory=list)
    next_id: int = 1


class LedgerCodec(ABC):
    """Abstract interface for ledger file formats"""

    name: str = ""

    @abstractmethod
    def dumps(self, accounts: Iterable[Account], next_id: int) -> str:
        """Serialize accounts to file contents"""
        pass

    @abstractmethod
    def loads(self, text: str, verify_balances: bool = True) -> LedgerSnapshot:
        """Parse file contents"""
        pass


class _LineReader:
    """Line iterator that remembers the current line number"""

    def __init__(self, text: str):
        self._lines = (line.rstrip("\r") for line in text.split("\n"))
        self.line_number = 0

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        line = next(self._lines)
        self.line_number += 1
        return line


class TextLedgerCodec(LedgerCodec):
    """
    Line-oriented format: one ``id;owner;balance`` header per account,
    ``T:timestamp|type|amount`` history lines and an ``END`` terminator.
    Blank lines between blocks are ignored.
    """

    name = "text"

    def dumps(self, accounts: Iterable[Account], next_id: int) -> str:
        return "".join(account.encode() for account in accounts)

    def loads(self, text: str, verify_balances: bool = True) -> LedgerSnapshot:
        snapshot = LedgerSnapshot()
        reader = _LineReader(text)

        for line in reader:
            if not line.strip():
                continue
            header_line = reader.line_number
            try:
                account = Account.decode(line, reader, verify_balance=verify_balances)
            except FormatError as e:
                if e.line_number is not None:
                    raise
                raise FormatError(e.detail, line_number=header_line)
            snapshot.accounts.append(account)

        snapshot.next_id = _next_id_after(snapshot.accounts, 1)
        return snapshot


class JsonLedgerCodec(LedgerCodec):
    """
    Structured format without reserved characters in free-text fields.
    Stores ``next_id`` alongside the accounts.
    """

    name = "json"

    def dumps(self, accounts: Iterable[Account], next_id: int) -> str:
        document = {
            "next_id": next_id,
            "accounts": [account.to_dict() for account in accounts],
        }
        return json.dumps(document, indent=2) + "\n"

    def loads(self, text: str, verify_balances: bool = True) -> LedgerSnapshot:
        if not text.strip():
            return LedgerSnapshot()

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid JSON: {e.msg}", line_number=e.lineno)

        if not isinstance(document, dict) or not isinstance(document.get("accounts", []), list):
            raise FormatError("Ledger document must be an object with an 'accounts' list")

        accounts = []
        for record in document.get("accounts", []):
            if not isinstance(record, dict):
                raise FormatError(f"Invalid account record {record!r}")
            accounts.append(Account.from_dict(record, verify_balance=verify_balances))

        stored_next_id = document.get("next_id", 1)
        if isinstance(stored_next_id, bool) or not isinstance(stored_next_id, int):
            raise FormatError(f"Invalid next_id {stored_next_id!r}")

        return LedgerSnapshot(
            accounts=accounts,
            next_id=_next_id_after(accounts, stored_next_id)
        )


CODECS: Dict[str, Type[LedgerCodec]] = {
    TextLedgerCodec.name: TextLedgerCodec,
    JsonLedgerCodec.name: JsonLedgerCodec,
}


def get_codec(name: str = "text") -> LedgerCodec:
    """Look up a codec by format name"""
    try:
        return CODECS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown storage format {name!r}; expected one of {sorted(CODECS)}")


def _next_id_after(accounts: List[Account], floor: int) -> int:
    seen = set()
    for account in accounts:
        if account.id in seen:
            raise FormatError(f"Duplicate account id {account.id}")
        seen.add(account.id)
    return max([floor] + [account_id + 1 for account_id in seen])


def read_text(path: PathLike) -> Optional[str]:
    """Read a file, or return None when it does not exist"""
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as e:
        raise FormatError(f"{path} is not valid UTF-8 text: {e.reason} at byte {e.start}")


def _file_mode(target: Path) -> int:
    """Permission bits for the replacement file: the target's, or the umask default"""
    try:
        return stat.S_IMODE(os.stat(target).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return NEW_FILE_MODE & ~umask


def write_atomic(path: PathLike, text: str) -> None:
    """
    Write to a temporary file in the target directory, then replace the
    target with it. The previous file survives any failure and an existing
    file keeps its permission bits.
    """
    target = Path(path)
    mode = _file_mode(target)
    fd, temp_path = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, target)
    except BaseException:
        try:
            os.unlink(temp_path)
        except FileNotFoundError:
            pass
        raise
