# clinic_finance/cache.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from clinic_finance.core.models import Transaction, parse_transaction_list, serialize_transactions

logger = logging.getLogger(__name__)

DEFAULT_SLOT = "clinica_transactions_fallback"


class LocalFallbackCache:
    """Whole-collection snapshot stored as one JSON file per named slot."""

    def __init__(self, cache_dir: Path | str, slot: str = DEFAULT_SLOT) -> None:
        self.cache_dir = Path(cache_dir).expanduser()
        self.slot = slot

    @property
    def path(self) -> Path:
        return self.cache_dir / f"{self.slot}.json"

    def save(self, transactions: List[Transaction]) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as fp:
            json.dump(serialize_transactions(transactions), fp, indent=2)

    def load(self) -> Optional[List[Transaction]]:
        """Return the last saved snapshot, or ``None`` when absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as fp:
                data = json.load(fp)
            return parse_transaction_list(data)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable fallback cache %s: %s", self.path, exc)
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
