# clinic_finance/backends.py
"""Persistence variants and the startup check that picks one of them.

``RemoteBackend`` writes through the REST store and re-syncs from it;
``LocalBackend`` mutates the in-memory state directly and mirrors every change
into the fallback cache. Both expose the same ``create``/``delete`` surface so
the coordinator never branches on the mode.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Protocol

from clinic_finance.cache import LocalFallbackCache
from clinic_finance.core.models import Transaction, parse_transaction
from clinic_finance.core.state import TransactionState
from clinic_finance.remote import RemoteStore, RemoteStoreError, StoreUnavailable
from clinic_finance.utils import next_transaction_id

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


class Backend(Protocol):
    mode: Mode

    def attach(self, state: TransactionState) -> None:
        """Start reacting to changes of ``state``."""

    def detach(self, state: TransactionState) -> None:
        """Stop reacting to changes of ``state``."""

    def create(self, state: TransactionState, record: dict) -> bool:
        """Persist a normalised record (no id) and update ``state``."""

    def delete(self, state: TransactionState, tx_id: str) -> bool:
        """Remove ``tx_id`` from the active target and from ``state``."""


class RemoteBackend:
    mode = Mode.REMOTE

    def __init__(self, store: RemoteStore) -> None:
        self.store = store

    def attach(self, state: TransactionState) -> None:
        return

    def detach(self, state: TransactionState) -> None:
        return

    def create(self, state: TransactionState, record: dict) -> bool:
        try:
            self.store.create_transaction(record)
        except RemoteStoreError as exc:
            logger.error("Create failed, collection left unchanged: %s", exc)
            return False
        # The store owns ordering and ids; adopt its list instead of splicing.
        try:
            state.replace(self.store.list_transactions())
        except StoreUnavailable as exc:
            logger.error("Created remotely but re-sync failed: %s", exc)
        return True

    def delete(self, state: TransactionState, tx_id: str) -> bool:
        try:
            self.store.delete_transaction(tx_id)
        except RemoteStoreError as exc:
            logger.error("Delete of %s failed, collection left unchanged: %s", tx_id, exc)
            return False
        state.remove(tx_id)
        return True


class LocalBackend:
    mode = Mode.LOCAL

    def __init__(self, cache: LocalFallbackCache) -> None:
        self.cache = cache

    def attach(self, state: TransactionState) -> None:
        state.add_listener(self._persist)

    def detach(self, state: TransactionState) -> None:
        state.remove_listener(self._persist)

    def _persist(self, transactions: List[Transaction]) -> None:
        try:
            self.cache.save(transactions)
        except OSError as exc:
            logger.error("Could not write fallback cache %s: %s", self.cache.path, exc)

    def create(self, state: TransactionState, record: dict) -> bool:
        tx = parse_transaction({**record, "id": next_transaction_id(state.ids())})
        state.prepend(tx)
        return True

    def delete(self, state: TransactionState, tx_id: str) -> bool:
        return state.remove(tx_id)


def select_backend(store: RemoteStore, cache: LocalFallbackCache, state: TransactionState) -> Backend:
    """Query the store once and load ``state`` from whichever source wins.

    The returned backend is already attached to ``state``.
    """
    try:
        transactions = store.list_transactions()
    except StoreUnavailable as exc:
        logger.warning("Remote store not available (%s); switching to local fallback.", exc)
        state.replace(cache.load() or [])
        backend: Backend = LocalBackend(cache)
    else:
        logger.info("Remote store reachable at %s (%d transactions).", store.base_url, len(transactions))
        state.replace(transactions)
        backend = RemoteBackend(store)
    backend.attach(state)
    return backend
