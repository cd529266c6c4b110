import threading
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

ClientID = int
TransactionID = int

# Amounts and balances are exact decimals of at most 28 significant digits and 28 fractional digits.
MAX_PRECISION = 28
MAX_SCALE = 28
MAX_AMOUNT = Decimal(10) ** MAX_PRECISION


def is_representable(amount: Decimal) -> bool:
    """A finite amount below 1E+28 with at most 28 significant and 28 fractional digits."""
    if not amount.is_finite():
        return False
    _, digits, exponent = amount.as_tuple()
    return len(digits) <= MAX_PRECISION and exponent >= -MAX_SCALE and amount.copy_abs() < MAX_AMOUNT


class ActivityType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class AccountActivityError(Exception):
    """Base class for activities an account refused to apply."""

    prefix = "account activity error"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.prefix}: {self.reason}"


class InvalidTransaction(AccountActivityError):
    """The activity payload is out of domain, e.g. a negative amount."""

    prefix = "invalid transaction"


class FailedTransaction(AccountActivityError):
    """A well-formed activity that could not be executed."""

    prefix = "failed transaction"


class FailedDisputeCase(AccountActivityError):
    """A violation of the dispute protocol."""

    prefix = "failed dispute case"


@dataclass(frozen=True)
class Transaction:
    transaction_id: TransactionID
    client_id: ClientID
    amount: Decimal


@dataclass(frozen=True)
class DisputeCase:
    transaction_id: TransactionID
    client_id: ClientID


_TRANSACTION_TYPES = (ActivityType.DEPOSIT, ActivityType.WITHDRAWAL)


@dataclass(frozen=True)
class AccountActivity:
    """
    One record of the activity stream.
    Deposits and withdrawals carry a Transaction, the dispute kinds carry a DisputeCase.
    Build instances with the per-kind constructors.
    """

    activity_type: ActivityType
    record: Union[Transaction, DisputeCase]

    def __post_init__(self):
        expected = Transaction if self.activity_type in _TRANSACTION_TYPES else DisputeCase
        if not isinstance(self.record, expected):
            raise ValueError(
                f"{self.activity_type.value} requires a {expected.__name__}, got {type(self.record).__name__}"
            )

    @classmethod
    def deposit(cls, transaction_id: TransactionID, client_id: ClientID, amount: Decimal) -> "AccountActivity":
        return cls(ActivityType.DEPOSIT, Transaction(transaction_id, client_id, amount))

    @classmethod
    def withdrawal(cls, transaction_id: TransactionID, client_id: ClientID, amount: Decimal) -> "AccountActivity":
        return cls(ActivityType.WITHDRAWAL, Transaction(transaction_id, client_id, amount))

    @classmethod
    def dispute(cls, transaction_id: TransactionID, client_id: ClientID) -> "AccountActivity":
        return cls(ActivityType.DISPUTE, DisputeCase(transaction_id, client_id))

    @classmethod
    def resolve(cls, transaction_id: TransactionID, client_id: ClientID) -> "AccountActivity":
        return cls(ActivityType.RESOLVE, DisputeCase(transaction_id, client_id))

    @classmethod
    def chargeback(cls, transaction_id: TransactionID, client_id: ClientID) -> "AccountActivity":
        return cls(ActivityType.CHARGEBACK, DisputeCase(transaction_id, client_id))

    @property
    def client_id(self) -> ClientID:
        return self.record.client_id

    @property
    def transaction_id(self) -> TransactionID:
        return self.record.transaction_id

    @property
    def amount(self) -> Optional[Decimal]:
        if isinstance(self.record, Transaction):
            return self.record.amount
        return None

    def __str__(self) -> str:
        return self.activity_type.value


# What an activity source yields: a parsed activity or the error that replaced it.
ActivityResult = Union[AccountActivity, Exception]


@dataclass(frozen=True)
class AccountSnapshot:
    client_id: ClientID
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass(frozen=True)
class SkippedRecord:
    """A record the engine did not apply. activity_type is None for parse failures."""

    activity_type: Optional[ActivityType]
    client_id: Optional[ClientID]
    transaction_id: Optional[TransactionID]
    error: Exception


@dataclass
class ProcessingReport:
    """Thread-safe record of what was applied and what was skipped and why."""

    processed: int = 0
    rejected: int = 0
    unparseable: int = 0
    skipped: List[SkippedRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_success(self) -> None:
        with self._lock:
            self.processed += 1

    def record_rejection(self, activity: AccountActivity, error: AccountActivityError) -> None:
        with self._lock:
            self.rejected += 1
            self.skipped.append(
                SkippedRecord(activity.activity_type, activity.client_id, activity.transaction_id, error)
            )

    def record_parse_failure(self, error: Exception) -> None:
        with self._lock:
            self.unparseable += 1
            self.skipped.append(SkippedRecord(None, None, None, error))
