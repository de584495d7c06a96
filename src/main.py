import csv
import sys
import logging
from typing import Optional, Sequence

from config import Config, LOG_FORMAT, LOG_LEVEL
from csv_io import read_transactions, write_accounts
from errors import ConfigError
from settlement_engine import SettlementEngine

logger = logging.getLogger(__name__)


def run(config: Config, output=None) -> None:
    """Settle the configured input file and write the account table."""
    engine = SettlementEngine()
    with open(config.transactions_path, "r", encoding="utf-8-sig", newline="") as f:
        accounts = engine.process(read_transactions(f, stats=engine.stats))

    if engine.stats.malformed:
        logger.warning(f"Skipped {engine.stats.malformed} malformed rows")

    write_accounts(accounts, output or sys.stdout)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, stream=sys.stderr)

    try:
        config = Config.from_args(sys.argv if argv is None else argv)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return 1

    try:
        run(config)
    except OSError as e:
        logger.error(f"Cannot process {config.transactions_path}: {e}")
        return 1
    except (csv.Error, UnicodeDecodeError) as e:
        logger.error(f"Malformed input in {config.transactions_path}: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
