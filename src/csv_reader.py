import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, List, TextIO

from models import AccountActivity, ActivityResult, ActivityType, is_representable

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("type", "client", "tx")
MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


class CsvParseError(Exception):
    """A row (or the header) of the input could not be turned into an activity."""


def read_activities(stream: TextIO) -> Iterator[ActivityResult]:
    """
    Read activity records from a CSV text stream.

    Yields an AccountActivity per parsed row, or a CsvParseError in its place
    when the row is malformed, so a bad row never stops the stream.

    Raises:
        CsvParseError: the first row is not a header with type, client and tx columns
    """
    reader = csv.reader(stream)

    headers = None
    for row in reader:
        fields = [value.strip() for value in row]
        if not any(fields):
            continue

        if headers is None:
            headers = [name.lower() for name in fields]
            if not all(column in headers for column in REQUIRED_COLUMNS):
                raise CsvParseError("invalid format: missing header line")
            continue

        try:
            result: ActivityResult = parse_row(headers, fields)
        except CsvParseError as e:
            result = CsvParseError(f"line {reader.line_num}: {e}")
        yield result


def parse_row(headers: List[str], fields: List[str]) -> AccountActivity:
    """Parse trimmed CSV fields into an AccountActivity. Trailing columns may be omitted."""
    if len(fields) > len(headers):
        raise CsvParseError(f"expected at most {len(headers)} fields, got {len(fields)}")

    record: Dict[str, str] = dict(zip(headers, fields))

    type_str = record.get("type", "").lower()
    try:
        activity_type = ActivityType(type_str)
    except ValueError:
        raise CsvParseError(f"unknown activity type {type_str!r}") from None

    client_id = _parse_id(record, "client", MAX_CLIENT_ID)
    transaction_id = _parse_id(record, "tx", MAX_TRANSACTION_ID)

    match activity_type:
        case ActivityType.DEPOSIT:
            return AccountActivity.deposit(transaction_id, client_id, _parse_amount(record))
        case ActivityType.WITHDRAWAL:
            return AccountActivity.withdrawal(transaction_id, client_id, _parse_amount(record))
        case ActivityType.DISPUTE:
            return AccountActivity.dispute(transaction_id, client_id)
        case ActivityType.RESOLVE:
            return AccountActivity.resolve(transaction_id, client_id)
        case ActivityType.CHARGEBACK:
            return AccountActivity.chargeback(transaction_id, client_id)
        case _:
            raise CsvParseError(f"unhandled activity type {activity_type}")


def _parse_id(record: Dict[str, str], column: str, maximum: int) -> int:
    value = record.get(column, "")
    if not value:
        raise CsvParseError(f"missing {column} field")
    # Plain ASCII digits only; int() would also take signs, "_" separators and non-ASCII digits.
    if not (value.isascii() and value.isdigit()):
        raise CsvParseError(f"invalid {column} field {value!r}")
    parsed = int(value)
    if not 0 <= parsed <= maximum:
        raise CsvParseError(f"{column} field {value!r} out of range 0..{maximum}")
    return parsed


def _parse_amount(record: Dict[str, str]) -> Decimal:
    value = record.get("amount", "")
    if not value:
        raise CsvParseError("missing amount field")
    if "_" in value or not value.isascii():
        raise CsvParseError(f"invalid amount field {value!r}")
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise CsvParseError(f"invalid amount field {value!r}") from None
    # Out-of-domain values (negative, NaN, infinite) are left for the account to reject.
    if amount.is_finite() and not is_representable(amount):
        raise CsvParseError(f"amount field {value!r} out of range")
    return amount
