# clinic_finance/coordinator.py
from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Mapping, Optional

from clinic_finance.backends import Backend, Mode
from clinic_finance.core.models import TransactionType, categories_for, coerce_amount, parse_date, parse_type
from clinic_finance.core.state import TransactionState
from clinic_finance.utils import today_iso

logger = logging.getLogger(__name__)


def build_record(candidate: Mapping[str, Any], today: Optional[str] = None) -> Optional[dict]:
    """Normalise a user submission into a store payload, or ``None`` if invalid.

    A submission needs a positive amount and a non-blank description. The date
    defaults to today, the type to INCOME and the category to the first entry
    of the type's vocabulary.
    """
    amount = coerce_amount(candidate.get("amount"))
    description = str(candidate.get("description") or "").strip()
    if amount <= 0 or not description:
        return None

    try:
        tx_type = parse_type(candidate.get("type") or TransactionType.INCOME)
        raw_date = candidate.get("date")
        tx_date = parse_date(raw_date) if raw_date else parse_date(today or today_iso())
    except ValueError as exc:
        logger.debug("Rejected submission %r: %s", dict(candidate), exc)
        return None

    category = candidate.get("category")
    if category is None or category == "":
        category = categories_for(tx_type)[0]

    return {
        "date": tx_date.isoformat(),
        "amount": amount,
        "description": description,
        "type": tx_type.value,
        "category": str(category),
    }


class MutationCoordinator:
    """Apply create/delete through the backend chosen at startup.

    Only one mutation runs at a time; a call made while another is still in
    flight is dropped.
    """

    def __init__(self, state: TransactionState, backend: Backend) -> None:
        self.state = state
        self.backend = backend
        self._busy = threading.Lock()

    @property
    def mode(self) -> Mode:
        return self.backend.mode

    def create(self, candidate: Mapping[str, Any], today: Optional[date] = None) -> bool:
        record = build_record(candidate, today.isoformat() if today else None)
        if record is None:
            return False
        if not self._busy.acquire(blocking=False):
            logger.warning("Another change is still in progress; ignoring create.")
            return False
        try:
            return self.backend.create(self.state, record)
        finally:
            self._busy.release()

    def delete(self, tx_id: str) -> bool:
        if not self._busy.acquire(blocking=False):
            logger.warning("Another change is still in progress; ignoring delete of %s.", tx_id)
            return False
        try:
            return self.backend.delete(self.state, str(tx_id))
        finally:
            self._busy.release()
