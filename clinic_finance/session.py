# clinic_finance/session.py
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from clinic_finance.ai import LLMProvider, request_insights
from clinic_finance.backends import Backend, Mode, select_backend
from clinic_finance.cache import LocalFallbackCache
from clinic_finance.coordinator import MutationCoordinator
from clinic_finance.core.models import Transaction
from clinic_finance.core.state import TransactionState
from clinic_finance.remote import RemoteStore
from clinic_finance.view import BudgetStats, FilterState, compute_stats, filter_transactions

logger = logging.getLogger(__name__)


class Session:
    """One dashboard session: owned state, the selected mode and its coordinator.

    The mode is chosen by ``refresh()`` and only changes when ``refresh()`` is
    called again.
    """

    def __init__(
        self,
        store: RemoteStore,
        cache: LocalFallbackCache,
        provider: Optional[LLMProvider] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.provider = provider
        self.state = TransactionState()
        self._backend: Optional[Backend] = None
        self._coordinator: Optional[MutationCoordinator] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any], provider: Optional[LLMProvider] = None) -> "Session":
        store = RemoteStore(base_url=config["api_url"])
        cache = LocalFallbackCache(config["cache_dir"])
        return cls(store, cache, provider=provider)

    @property
    def started(self) -> bool:
        return self._coordinator is not None

    @property
    def mode(self) -> Optional[Mode]:
        return self._backend.mode if self._backend else None

    @property
    def transactions(self) -> List[Transaction]:
        return self.state.transactions

    def refresh(self) -> Mode:
        # Detach first so the reload below is not mirrored into the cache;
        # the old backend is restored if selection itself blows up.
        previous = self._backend
        if previous is not None:
            previous.detach(self.state)
        try:
            self._backend = select_backend(self.store, self.cache, self.state)
        except Exception:
            if previous is not None:
                previous.attach(self.state)
            raise
        self._coordinator = MutationCoordinator(self.state, self._backend)
        logger.info("Session running in %s mode.", self._backend.mode.value)
        return self._backend.mode

    @property
    def coordinator(self) -> MutationCoordinator:
        if self._coordinator is None:
            self.refresh()
        return self._coordinator

    def create(self, candidate: Mapping[str, Any]) -> bool:
        return self.coordinator.create(candidate)

    def delete(self, tx_id: str) -> bool:
        return self.coordinator.delete(tx_id)

    def filtered(self, filters: FilterState) -> List[Transaction]:
        return filter_transactions(self.state.transactions, filters)

    def stats(self) -> BudgetStats:
        return compute_stats(self.state.transactions)

    def insights(self) -> Optional[str]:
        """Run the insight request; ``None`` when there is nothing to analyse."""
        transactions = self.state.transactions
        if not transactions:
            return None
        return request_insights(transactions, self.provider)
