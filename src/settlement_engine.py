import logging
from collections import deque
from typing import Deque, Iterable, List

from models import Transaction, ClientAccount, ProcessingResult, ProcessingStats
from state_manager import StateManager
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class SettlementEngine:
    """
    Replays an ordered transaction stream against client accounts.

    Transactions are applied one at a time, in input order. Rejected
    transactions are dropped and processing continues. With
    ``retry_unresolved`` enabled, dispute-family transactions whose target
    has not been seen are deferred and retried once after the stream ends.
    """

    def __init__(self, retry_unresolved: bool = False):
        self._retry_unresolved = retry_unresolved
        self._state = StateManager()
        self._processor = TransactionProcessor(self._state)
        self._deferred: Deque[Transaction] = deque()
        self.stats = ProcessingStats()

    def apply(self, transaction: Transaction) -> ProcessingResult:
        """Apply a single transaction and record the outcome."""
        result, reason = self._processor.process_transaction(transaction)

        if result == ProcessingResult.SUCCESS:
            self.stats.record_success()
        elif result == ProcessingResult.FAILED_RETRIABLE and self._retry_unresolved:
            self._deferred.append(transaction)
            self.stats.record_deferred()
        else:
            self.stats.record_rejection(reason)

        return result

    def process(self, transactions: Iterable[Transaction]) -> List[ClientAccount]:
        """Apply every transaction in order and return the final account states."""
        logger.info("Starting settlement")

        for transaction in transactions:
            self.apply(transaction)

        if self._deferred:
            logger.info(f"Retrying {len(self._deferred)} deferred transactions")
            self._process_deferred()

        logger.info(
            f"Processed: {self.stats.processed}, "
            f"Failed: {self.stats.failed}, "
            f"Deferred: {self.stats.deferred}, "
            f"Retried: {self.stats.retried}"
        )
        return self.snapshot()

    def _process_deferred(self) -> None:
        """Retry deferred transactions once, in the order they were deferred."""
        still_failed = []

        while self._deferred:
            transaction = self._deferred.popleft()
            self.stats.record_retry()

            result, reason = self._processor.process_transaction(transaction)
            if result == ProcessingResult.SUCCESS:
                self.stats.record_success()
            else:
                self.stats.record_rejection(reason)
                if result == ProcessingResult.FAILED_RETRIABLE:
                    still_failed.append(transaction)

        if still_failed:
            logger.warning(f"{len(still_failed)} transactions still unresolved after retry")
            for transaction in still_failed:
                logger.warning(f"  Discarding: {transaction}")

    def snapshot(self) -> List[ClientAccount]:
        """Accounts in the order their clients were first seen."""
        return self._state.get_all_accounts()
