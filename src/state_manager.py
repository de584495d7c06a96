from typing import Dict, List, Optional

from models import Transaction, StoredTransaction, ClientAccount


class StateManager:
    """
    Owns client accounts and the history of applied deposits/withdrawals.
    Accounts keep the order in which their clients were first seen.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        self._transactions: Dict[int, StoredTransaction] = {}

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        if client_id not in self._accounts:
            self._accounts[client_id] = ClientAccount(client_id=client_id)
        return self._accounts[client_id]

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def store_transaction(self, transaction: Transaction) -> StoredTransaction:
        """Store an applied deposit/withdrawal for future dispute lookups."""
        stored = StoredTransaction.from_transaction(transaction)
        self._transactions[stored.transaction_id] = stored
        return stored

    def get_transaction(self, transaction_id: int) -> Optional[StoredTransaction]:
        """Retrieve stored transaction by ID."""
        return self._transactions.get(transaction_id)

    def has_transaction(self, transaction_id: int) -> bool:
        return transaction_id in self._transactions

    def get_all_accounts(self) -> List[ClientAccount]:
        """Return all accounts in discovery order (for final output)."""
        return list(self._accounts.values())
