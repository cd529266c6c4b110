import threading
from typing import Dict

from account import Account
from models import ClientID


class StateManager:
    """
    Owns the client id -> Account mapping for one processing run.
    Accounts are created lazily and never removed.
    """

    def __init__(self):
        self._accounts: Dict[ClientID, Account] = {}

        # Protects insertion into _accounts when workers create accounts concurrently.
        # Each account itself is only ever touched by the worker owning its partition.
        self._global_lock = threading.Lock()

    def get_or_create_account(self, client_id: ClientID) -> Account:
        """Get existing account or create new one with zero balances."""
        with self._global_lock:
            if client_id not in self._accounts:
                self._accounts[client_id] = Account(client_id)
            return self._accounts[client_id]

    def get_all_accounts(self) -> Dict[ClientID, Account]:
        """Return all accounts (for final output)."""
        with self._global_lock:
            return dict(self._accounts)
