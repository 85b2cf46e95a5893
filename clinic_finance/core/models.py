# clinic_finance/core/models.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, List


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


INCOME_CATEGORIES = (
    "Visite Specialistiche",
    "Interventi Chirurgici",
    "Diagnostica",
    "Consulenze",
    "Assicurazioni",
    "Altro",
)

EXPENSE_CATEGORIES = (
    "Affitto e Struttura",
    "Materiale Medico",
    "Stipendi Staff",
    "Utenze",
    "Marketing",
    "Manutenzione Apparati",
    "Altro",
)

# Union of both vocabularies, sorted once at import.
ALL_CATEGORIES = tuple(sorted(set(INCOME_CATEGORIES) | set(EXPENSE_CATEGORIES)))


def categories_for(tx_type: TransactionType) -> tuple:
    if tx_type is TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


@dataclass(frozen=True)
class Transaction:
    id: str
    date: date
    amount: float
    description: str
    type: TransactionType
    category: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        data["type"] = self.type.value
        return data


def coerce_amount(value: Any) -> float:
    """Return ``value`` as a float, or ``0.0`` when it is not a finite number."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def parse_type(value: Any) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value).upper())
    except ValueError as exc:
        raise ValueError(f"Unknown transaction type: {value!r}") from exc


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid transaction date: {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    # Full ISO timestamps are accepted too, keeping only the calendar part.
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValueError(f"Invalid transaction date: {value!r}") from exc


def parse_transaction(raw: Any) -> Transaction:
    """Validate one untrusted record (store response or cache entry).

    Structural problems (not an object, missing id, unknown type, bad date)
    raise ``ValueError``. A missing or non-numeric amount is coerced to zero
    instead, so totals stay numeric.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Transaction must be an object, got {type(raw).__name__}")
    tx_id = raw.get("id")
    if tx_id is None or tx_id == "" or isinstance(tx_id, (dict, list, bool)):
        raise ValueError(f"Transaction has no usable id: {raw!r}")
    description = raw.get("description")
    category = raw.get("category")
    return Transaction(
        id=str(tx_id),
        date=parse_date(raw.get("date")),
        amount=coerce_amount(raw.get("amount")),
        description="" if description is None else str(description),
        type=parse_type(raw.get("type")),
        category="" if category is None else str(category),
    )


def parse_transaction_list(payload: Any) -> List[Transaction]:
    """Validate a whole collection; any bad element invalidates the lot."""
    if not isinstance(payload, list):
        raise ValueError(f"Expected a list of transactions, got {type(payload).__name__}")
    transactions = [parse_transaction(item) for item in payload]
    seen = set()
    for tx in transactions:
        if tx.id in seen:
            raise ValueError(f"Duplicate transaction id: {tx.id}")
        seen.add(tx.id)
    return transactions


def serialize_transactions(transactions: Iterable[Transaction]) -> List[dict]:
    return [tx.to_dict() for tx in transactions]
