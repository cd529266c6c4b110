import logging
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow
from typing import Callable, Dict, Set

from models import (
    MAX_PRECISION,
    AccountActivity,
    AccountSnapshot,
    ActivityType,
    ClientID,
    DisputeCase,
    FailedDisputeCase,
    FailedTransaction,
    InvalidTransaction,
    Transaction,
    TransactionID,
    is_representable,
)

logger = logging.getLogger(__name__)


def is_valid_amount(amount: Decimal) -> bool:
    """Zero, or strictly positive, finite, not subnormal and representable. Rejects -0 and NaN."""
    return (
        amount.is_finite()
        and not amount.is_signed()
        and not amount.is_subnormal()
        and is_representable(amount)
    )


def _balance_context() -> Context:
    # Any rounding of a balance is an error, never a silent loss.
    return Context(prec=MAX_PRECISION, traps=[InvalidOperation, DivisionByZero, Overflow, Inexact])


def _exact(operation: Callable[[Context, Decimal, Decimal], Decimal], a: Decimal, b: Decimal) -> Decimal:
    try:
        result = operation(_balance_context(), a, b)
    except (Inexact, Overflow):
        raise FailedTransaction(f"balance {a} cannot be adjusted by {b} exactly") from None
    if not is_representable(result):
        raise FailedTransaction(f"balance {result} out of representable range")
    return result


def _add(a: Decimal, b: Decimal) -> Decimal:
    return _exact(Context.add, a, b)


def _subtract(a: Decimal, b: Decimal) -> Decimal:
    return _exact(Context.subtract, a, b)


class Account:
    """
    Balances and dispute bookkeeping for a single client.
    The only way to change an account is apply(); every rejected activity
    raises an AccountActivityError and leaves the account untouched.
    """

    def __init__(self, client_id: ClientID):
        self.client_id = client_id
        self.available = Decimal("0.0")
        self.held = Decimal("0.0")
        self.total = Decimal("0.0")
        self.locked = False
        self.transaction_record: Dict[TransactionID, Decimal] = {}
        self.dispute_cases: Set[TransactionID] = set()

    def __repr__(self) -> str:
        return (
            f"Account(client={self.client_id}, available={self.available}, held={self.held}, "
            f"total={self.total}, locked={self.locked})"
        )

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(self.client_id, self.available, self.held, self.total, self.locked)

    def apply(self, activity: AccountActivity) -> None:
        """
        Apply a single activity to the account.

        Raises:
            InvalidTransaction: the amount is out of domain
            FailedTransaction: account locked, duplicate transaction id, insufficient funds
                or a balance that would leave the exactly representable range
            FailedDisputeCase: the transaction is already under dispute
        """
        if self.locked:
            raise FailedTransaction("account locked")

        match activity.activity_type:
            case ActivityType.DEPOSIT:
                self._handle_deposit(activity.record)
            case ActivityType.WITHDRAWAL:
                self._handle_withdrawal(activity.record)
            case ActivityType.DISPUTE:
                self._handle_dispute(activity.record)
            case ActivityType.RESOLVE:
                self._handle_resolve(activity.record)
            case ActivityType.CHARGEBACK:
                self._handle_chargeback(activity.record)
            case _:
                raise ValueError(f"Unhandled activity type {activity.activity_type}")

    def _handle_deposit(self, transaction: Transaction) -> None:
        if not is_valid_amount(transaction.amount):
            raise InvalidTransaction(f"deposit amount must be a positive number, got {transaction.amount}")

        self._check_not_recorded(transaction.transaction_id)

        available = _add(self.available, transaction.amount)
        total = _add(self.total, transaction.amount)
        self.available, self.total = available, total
        self.transaction_record[transaction.transaction_id] = transaction.amount

    def _handle_withdrawal(self, transaction: Transaction) -> None:
        if not is_valid_amount(transaction.amount):
            raise InvalidTransaction(f"withdrawal amount must be a positive number, got {transaction.amount}")

        self._check_not_recorded(transaction.transaction_id)

        if transaction.amount > self.available:
            raise FailedTransaction("withdrawal failed because of insufficient funds")

        available = _subtract(self.available, transaction.amount)
        total = _subtract(self.total, transaction.amount)
        self.available, self.total = available, total
        self.transaction_record[transaction.transaction_id] = transaction.amount

    def _handle_dispute(self, dispute_case: DisputeCase) -> None:
        if dispute_case.transaction_id in self.dispute_cases:
            raise FailedDisputeCase("transaction already disputed")

        amount = self.transaction_record.get(dispute_case.transaction_id)
        if amount is None:
            # May reference a transaction outside the current input window.
            logger.debug(f"Dispute for tx {dispute_case.transaction_id}: unknown transaction, ignoring")
            return

        available = _subtract(self.available, amount)
        held = _add(self.held, amount)
        self.available, self.held = available, held
        self.dispute_cases.add(dispute_case.transaction_id)

    def _handle_resolve(self, dispute_case: DisputeCase) -> None:
        if dispute_case.transaction_id not in self.dispute_cases:
            logger.debug(f"Resolve for tx {dispute_case.transaction_id}: no open dispute, ignoring")
            return

        amount = self.transaction_record[dispute_case.transaction_id]
        held = _subtract(self.held, amount)
        available = _add(self.available, amount)
        self.held, self.available = held, available
        self.dispute_cases.discard(dispute_case.transaction_id)

    def _handle_chargeback(self, dispute_case: DisputeCase) -> None:
        if dispute_case.transaction_id not in self.dispute_cases:
            logger.debug(f"Chargeback for tx {dispute_case.transaction_id}: no open dispute, ignoring")
            return

        amount = self.transaction_record[dispute_case.transaction_id]
        held = _subtract(self.held, amount)
        total = _subtract(self.total, amount)
        self.held, self.total = held, total
        self.dispute_cases.discard(dispute_case.transaction_id)
        self.locked = True

    def _check_not_recorded(self, transaction_id: TransactionID) -> None:
        if transaction_id in self.transaction_record:
            raise FailedTransaction(f"transaction {transaction_id} already recorded")
