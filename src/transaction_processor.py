import logging
from typing import Optional, Tuple

from models import Transaction, TransactionType, ClientAccount, StoredTransaction, ProcessingResult, RejectionReason
from state_manager import StateManager

logger = logging.getLogger(__name__)

Outcome = Tuple[ProcessingResult, Optional[RejectionReason]]

SUCCESS: Outcome = (ProcessingResult.SUCCESS, None)


def _rejected(reason: RejectionReason, retriable: bool = False) -> Outcome:
    if retriable:
        return ProcessingResult.FAILED_RETRIABLE, reason
    return ProcessingResult.FAILED_PERMANENT, reason


class TransactionProcessor:
    """
    Applies transactions to state.
    Returns a (ProcessingResult, RejectionReason) pair; the reason is None on success.
    A rejected transaction leaves every account unchanged.
    """

    def __init__(self, state: StateManager):
        self._state = state

    def process_transaction(self, transaction: Transaction) -> Outcome:
        """
        Process a single transaction.

        Returns:
            SUCCESS: Applied
            FAILED_RETRIABLE: Referenced transaction not seen (yet)
            FAILED_PERMANENT: Will never succeed (e.g., wrong client, locked account)
        """
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(transaction)
            case _:
                raise AssertionError(f"unhandled transaction type: {transaction.transaction_type}")

    def _check_balance_change(self, transaction: Transaction) -> Tuple[ClientAccount, Optional[Outcome]]:
        account = self._state.get_or_create_account(transaction.client_id)

        if account.locked:
            logger.info(f"{transaction.transaction_type.value.capitalize()} tx {transaction.transaction_id}: account {account.client_id} is locked")
            return account, _rejected(RejectionReason.ACCOUNT_LOCKED)

        if self._state.has_transaction(transaction.transaction_id):
            logger.warning(f"{transaction.transaction_type.value.capitalize()} tx {transaction.transaction_id}: transaction id already used, skipping")
            return account, _rejected(RejectionReason.DUPLICATE_TRANSACTION)

        return account, None

    def _handle_deposit(self, transaction: Transaction) -> Outcome:
        account, rejection = self._check_balance_change(transaction)
        if rejection:
            return rejection

        account.credit(transaction.amount)
        self._state.store_transaction(transaction)
        return SUCCESS

    def _handle_withdrawal(self, transaction: Transaction) -> Outcome:
        account, rejection = self._check_balance_change(transaction)
        if rejection:
            return rejection

        if account.available < transaction.amount:
            logger.info(f"Withdrawal tx {transaction.transaction_id}: insufficient funds (available {account.available}, requested {transaction.amount})")
            return _rejected(RejectionReason.INSUFFICIENT_FUNDS)

        account.debit(transaction.amount)
        self._state.store_transaction(transaction)
        return SUCCESS

    def _lookup_original(self, transaction: Transaction) -> Tuple[Optional[StoredTransaction], Optional[ClientAccount], Optional[Outcome]]:
        """Resolve the deposit/withdrawal a dispute-family transaction points at."""
        label = transaction.transaction_type.value.capitalize()
        original = self._state.get_transaction(transaction.referenced_transaction_id)

        if original is None:
            logger.warning(f"{label} for tx {transaction.referenced_transaction_id}: transaction not found")
            return None, None, _rejected(RejectionReason.UNKNOWN_REFERENCE, retriable=True)

        if original.client_id != transaction.client_id:
            logger.warning(f"{label} for tx {transaction.referenced_transaction_id}: client mismatch (expected {original.client_id}, got {transaction.client_id})")
            return None, None, _rejected(RejectionReason.CLIENT_MISMATCH)

        return original, self._state.get_account(original.client_id), None

    def _handle_dispute(self, transaction: Transaction) -> Outcome:
        original, account, rejection = self._lookup_original(transaction)
        if rejection:
            return rejection

        if original.disputed:
            logger.warning(f"Dispute for tx {original.transaction_id}: transaction already disputed")
            return _rejected(RejectionReason.ALREADY_DISPUTED)

        if original.charged_back:
            logger.warning(f"Dispute for tx {original.transaction_id}: transaction already charged back")
            return _rejected(RejectionReason.ALREADY_CHARGED_BACK)

        account.hold(original.amount)
        original.disputed = True
        return SUCCESS

    def _handle_resolve(self, transaction: Transaction) -> Outcome:
        original, account, rejection = self._lookup_original(transaction)
        if rejection:
            return rejection

        if not original.disputed:
            logger.info(f"Resolve for tx {original.transaction_id}: transaction is not under dispute")
            return _rejected(RejectionReason.NOT_DISPUTED)

        account.release_hold(original.amount)
        original.disputed = False
        return SUCCESS

    def _handle_chargeback(self, transaction: Transaction) -> Outcome:
        original, account, rejection = self._lookup_original(transaction)
        if rejection:
            return rejection

        if not original.disputed:
            logger.info(f"Chargeback for tx {original.transaction_id}: transaction is not under dispute")
            return _rejected(RejectionReason.NOT_DISPUTED)

        account.remove_held(original.amount)
        account.locked = True
        original.disputed = False
        original.charged_back = True
        return SUCCESS
