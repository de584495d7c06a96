import logging
from dataclasses import dataclass
from typing import Sequence

from errors import ConfigError

LOG_LEVEL = logging.WARNING
LOG_FORMAT = "%(levelname)s: %(message)s"

USAGE = "Usage: settlement-engine <transactions.csv>"


@dataclass(frozen=True)
class Config:
    transactions_path: str

    @classmethod
    def from_args(cls, argv: Sequence[str]) -> "Config":
        """Build a Config from ``sys.argv``: exactly one input path is required."""
        if len(argv) != 2:
            raise ConfigError(USAGE)
        return cls(transactions_path=argv[1])
