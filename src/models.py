from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from errors import MalformedRecord

AMOUNT_PLACES = 4
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)
MAX_AMOUNT_DIGITS = 28
MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class ProcessingResult(Enum):
    SUCCESS = "success"
    FAILED_RETRIABLE = "failed_retriable"
    FAILED_PERMANENT = "failed_permanent"


class RejectionReason(Enum):
    UNKNOWN_REFERENCE = "unknown_reference"
    CLIENT_MISMATCH = "client_mismatch"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ACCOUNT_LOCKED = "account_locked"
    ALREADY_DISPUTED = "already_disputed"
    NOT_DISPUTED = "not_disputed"
    ALREADY_CHARGED_BACK = "already_charged_back"
    DUPLICATE_TRANSACTION = "duplicate_transaction"


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __post_init__(self):
        if not 0 <= self.client_id <= MAX_CLIENT_ID:
            raise MalformedRecord(f"client id out of range: {self.client_id}")
        if not 0 <= self.transaction_id <= MAX_TRANSACTION_ID:
            raise MalformedRecord(f"transaction id out of range: {self.transaction_id}")

        if self.transaction_type.carries_amount:
            if self.amount is None:
                raise MalformedRecord(f"{self.transaction_type.value} tx {self.transaction_id} requires an amount")
            object.__setattr__(self, "amount", _validate_amount(self.amount))
        elif self.amount is not None:
            raise MalformedRecord(f"{self.transaction_type.value} tx {self.transaction_id} must not carry an amount")

    @property
    def referenced_transaction_id(self) -> int:
        """Deposits and withdrawals reference themselves; dispute-family records reference their target."""
        return self.transaction_id

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class StoredTransaction:
    """A deposit or withdrawal that was applied, kept for dispute lookups."""

    transaction_id: int
    client_id: int
    transaction_type: TransactionType
    amount: Decimal
    disputed: bool = False
    charged_back: bool = False

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "StoredTransaction":
        return cls(
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            transaction_type=transaction.transaction_type,
            amount=transaction.amount,
        )


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount


@dataclass
class ProcessingStats:
    """Counters for a single settlement run."""

    processed: int = 0
    deferred: int = 0
    retried: int = 0
    malformed: int = 0
    rejected: Counter = field(default_factory=Counter)

    def record_success(self):
        self.processed += 1

    def record_rejection(self, reason: RejectionReason):
        self.rejected[reason] += 1

    def record_deferred(self):
        self.deferred += 1

    def record_retry(self):
        self.retried += 1

    def record_malformed(self):
        self.malformed += 1

    @property
    def failed(self) -> int:
        return sum(self.rejected.values())


def _parse_id(value: str, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedRecord(f"{name} is not an integer: {value!r}") from None


def _validate_amount(amount: Decimal) -> Decimal:
    """Check an amount fits the 4-place representation and return it quantized."""
    if not isinstance(amount, Decimal):
        raise MalformedRecord(f"amount is not a Decimal: {amount!r}")

    # NaN cannot be compared, so finiteness goes first
    if not amount.is_finite():
        raise MalformedRecord(f"amount is not finite: {amount}")
    if amount < 0:
        raise MalformedRecord(f"negative amount: {amount}")

    if amount.normalize().as_tuple().exponent < -AMOUNT_PLACES:
        raise MalformedRecord(f"amount has more than {AMOUNT_PLACES} decimal places: {amount}")

    try:
        quantized = amount.quantize(AMOUNT_QUANTUM)
    except InvalidOperation:
        raise MalformedRecord(f"amount exceeds {MAX_AMOUNT_DIGITS} significant digits: {amount}") from None
    if len(quantized.as_tuple().digits) > MAX_AMOUNT_DIGITS:
        raise MalformedRecord(f"amount exceeds {MAX_AMOUNT_DIGITS} significant digits: {amount}")
    return quantized


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise MalformedRecord(f"amount is not a decimal: {value!r}") from None


def parse_transaction(kind: str, client: str, tx: str, amount: Optional[str] = None) -> Transaction:
    """
    Build a validated Transaction from raw field values.

    Fields are expected to be already trimmed, and ``kind`` lowercased.
    An empty ``amount`` string is treated as absent.

    Raises:
        MalformedRecord: the fields do not describe a valid transaction.
    """
    try:
        transaction_type = TransactionType(kind)
    except ValueError:
        raise MalformedRecord(f"unknown transaction type: {kind!r}") from None

    return Transaction(
        transaction_type=transaction_type,
        client_id=_parse_id(client, "client"),
        transaction_id=_parse_id(tx, "tx"),
        amount=_parse_amount(amount) if amount else None,
    )
