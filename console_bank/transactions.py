"""
Transaction Records

Immutable records of single ledger events. The sign of an amount is never
stored: it is implied by the transaction type.
"""

from decimal import Decimal, InvalidOperation, getcontext
from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, Union
from enum import Enum

from .exceptions import FormatError, InvalidAmountError


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
FIELD_SEPARATOR = "|"

AmountLike = Union[Decimal, int, float, str]


class TransactionType(Enum):
    """Kinds of ledger events"""
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"

    @property
    def is_credit(self) -> bool:
        """Check if this type adds to the balance"""
        return self in (TransactionType.DEPOSIT, TransactionType.TRANSFER_IN)


def current_timestamp() -> str:
    """Local wall-clock time as YYYY-MM-DD HH:MM:SS"""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def to_amount(value: AmountLike) -> Decimal:
    """
    Coerce a value to a finite, non-negative Decimal.

    Raises:
        InvalidAmountError: If the value is not numeric, negative, NaN,
            infinite, or too large to add without losing digits
    """
    if isinstance(value, bool):
        raise InvalidAmountError(value)

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(value)

    if not amount.is_finite() or amount < 0:
        raise InvalidAmountError(value)
    if amount and amount.adjusted() >= getcontext().prec:
        raise InvalidAmountError(value)
    return amount


@dataclass(frozen=True)
class Transaction:
    """
    One recorded ledger event.
    Append-only: instances are never mutated after creation.
    """
    timestamp: str
    type: TransactionType
    amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_amount(self.amount))

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the transaction type"""
        return self.amount if self.type.is_credit else -self.amount

    def encode(self) -> str:
        """Render as ``timestamp|type|amount``"""
        return FIELD_SEPARATOR.join([self.timestamp, self.type.value, str(self.amount)])

    @classmethod
    def decode(cls, line: str) -> 'Transaction':
        """
        Parse a ``timestamp|type|amount`` line.

        Raises:
            FormatError: If fields are missing, the type is unknown or the
                amount is not a finite non-negative number
        """
        fields = line.split(FIELD_SEPARATOR)
        if len(fields) != 3:
            raise FormatError(f"Transaction needs 3 fields, got {len(fields)}: {line!r}")

        timestamp, type_value, amount_text = fields[0], fields[1], fields[2]
        try:
            transaction_type = TransactionType(type_value)
        except ValueError:
            raise FormatError(f"Unknown transaction type {type_value!r}")

        try:
            amount = to_amount(amount_text)
        except InvalidAmountError:
            raise FormatError(f"Invalid transaction amount {amount_text!r}")

        return cls(timestamp=timestamp, type=transaction_type, amount=amount)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured storage"""
        return {
            "timestamp": self.timestamp,
            "type": self.type.value,
            "amount": str(self.amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create instance from dictionary"""
        try:
            return cls(
                timestamp=str(data["timestamp"]),
                type=TransactionType(data["type"]),
                amount=to_amount(data["amount"]),
            )
        except KeyError as e:
            raise FormatError(f"Transaction record missing field {e}")
        except (ValueError, InvalidAmountError) as e:
            raise FormatError(f"Invalid transaction record {data!r}: {e}")
