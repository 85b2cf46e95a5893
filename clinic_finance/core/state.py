# clinic_finance/core/state.py
from __future__ import annotations

import threading
from typing import Callable, Iterable, List

from clinic_finance.core.models import Transaction

Listener = Callable[[List[Transaction]], None]


class TransactionState:
    """Owned, in-memory transaction collection, newest first.

    Every UI surface and the mutation coordinator share one instance. Each
    change notifies the registered listeners with a snapshot of the new
    collection.
    """

    def __init__(self, transactions: Iterable[Transaction] = ()) -> None:
        self._transactions: List[Transaction] = list(transactions)
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    @property
    def transactions(self) -> List[Transaction]:
        with self._lock:
            return list(self._transactions)

    def __len__(self) -> int:
        return len(self._transactions)

    def __contains__(self, tx_id: object) -> bool:
        with self._lock:
            return any(tx.id == tx_id for tx in self._transactions)

    def ids(self) -> set:
        with self._lock:
            return {tx.id for tx in self._transactions}

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def replace(self, transactions: Iterable[Transaction]) -> None:
        with self._lock:
            self._transactions = list(transactions)
            self._notify()

    def prepend(self, transaction: Transaction) -> None:
        with self._lock:
            if any(tx.id == transaction.id for tx in self._transactions):
                raise ValueError(f"Transaction id already present: {transaction.id}")
            self._transactions = [transaction] + self._transactions
            self._notify()

    def remove(self, tx_id: str) -> bool:
        with self._lock:
            remaining = [tx for tx in self._transactions if tx.id != tx_id]
            if len(remaining) == len(self._transactions):
                return False
            self._transactions = remaining
            self._notify()
            return True

    def _notify(self) -> None:
        snapshot = list(self._transactions)
        for listener in list(self._listeners):
            listener(snapshot)
