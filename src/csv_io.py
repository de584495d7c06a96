import csv
import logging
from decimal import Decimal
from typing import Dict, Iterable, Iterator, Optional, TextIO

from errors import MalformedRecord
from models import Transaction, ClientAccount, ProcessingStats, AMOUNT_QUANTUM, parse_transaction

logger = logging.getLogger(__name__)

OUTPUT_HEADER = ["client", "available", "held", "total", "locked"]


def format_decimal(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{value.quantize(AMOUNT_QUANTUM):f}"


def parse_csv_row(row: Dict[Optional[str], object]) -> Transaction:
    """Parse a csv.DictReader row into a Transaction."""
    if None in row:
        raise MalformedRecord(f"too many fields: {row}")

    normalized = {k.strip(): (v or "").strip() for k, v in row.items()}
    try:
        return parse_transaction(
            normalized["type"].lower(),
            normalized["client"],
            normalized["tx"],
            normalized.get("amount", ""),
        )
    except KeyError as e:
        raise MalformedRecord(f"missing column {e}") from None


def read_transactions(
    stream: TextIO,
    strict: bool = False,
    stats: Optional[ProcessingStats] = None,
) -> Iterator[Transaction]:
    """
    Lazily yield transactions from CSV text with a ``type, client, tx, amount`` header.

    Malformed rows are logged and skipped, or re-raised when ``strict`` is set.
    """
    reader = csv.DictReader(stream)
    if reader.fieldnames:
        # A UTF-8 byte order mark decoded as plain utf-8 sticks to the first column name
        reader.fieldnames = [name.lstrip("\ufeff") for name in reader.fieldnames]
    for row in reader:
        try:
            yield parse_csv_row(row)
        except MalformedRecord as e:
            if strict:
                raise
            logger.warning(f"Skipping malformed row on line {reader.line_num}: {e}")
            if stats is not None:
                stats.record_malformed()


def write_accounts(accounts: Iterable[ClientAccount], stream: TextIO) -> None:
    """Write account states as CSV, in the order given."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)
    for account in accounts:
        writer.writerow([
            account.client_id,
            format_decimal(account.available),
            format_decimal(account.held),
            format_decimal(account.total),
            str(account.locked).lower(),
        ])
