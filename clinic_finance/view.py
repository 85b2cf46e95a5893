# clinic_finance/view.py
"""Filtering and aggregates behind the dashboard.

Everything here is pure: functions take the current collection and return new
values without touching their inputs. Headline stats always use the full
collection; filters only shape the visible table.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from clinic_finance.core.models import Transaction, TransactionType, coerce_amount, parse_type


@dataclass(frozen=True)
class FilterState:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Optional[str]]) -> "FilterState":
        """Build filters from form/query strings; blank or unknown values mean unset."""
        return cls(
            type=_parse_optional_type(params.get("type")),
            category=params.get("category") or None,
            start_date=_parse_optional_date(params.get("start_date")),
            end_date=_parse_optional_date(params.get("end_date")),
            search=params.get("search") or None,
        )

    @property
    def is_empty(self) -> bool:
        return self == FilterState()

    def matches(self, tx: Transaction) -> bool:
        if self.type is not None and tx.type is not self.type:
            return False
        if self.category and tx.category != self.category:
            return False
        if self.start_date is not None and tx.date < self.start_date:
            return False
        if self.end_date is not None and tx.date > self.end_date:
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in tx.description.lower() and needle not in tx.category.lower():
                return False
        return True


def reset_filters() -> FilterState:
    return FilterState()


def filter_transactions(transactions: Iterable[Transaction], filters: FilterState) -> List[Transaction]:
    return [tx for tx in transactions if filters.matches(tx)]


@dataclass(frozen=True)
class BudgetStats:
    total_income: float
    total_expense: float
    balance: float
    ratio: int
    monthly_data: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalIncome": self.total_income,
            "totalExpense": self.total_expense,
            "balance": self.balance,
            "ratio": self.ratio,
            "monthlyData": self.monthly_data,
        }


def compute_stats(transactions: Iterable[Transaction]) -> BudgetStats:
    txs = list(transactions)
    income = sum(coerce_amount(tx.amount) for tx in txs if tx.type is TransactionType.INCOME)
    expense = sum(coerce_amount(tx.amount) for tx in txs if tx.type is TransactionType.EXPENSE)
    return BudgetStats(
        total_income=income,
        total_expense=expense,
        balance=income - expense,
        ratio=math.floor(income / expense * 100 + 0.5) if expense > 0 else 100,
        monthly_data=monthly_breakdown(txs),
    )


def monthly_breakdown(transactions: Iterable[Transaction]) -> List[dict]:
    months: Dict[str, Dict[str, float]] = {}
    for tx in transactions:
        key = tx.date.strftime("%Y-%m")
        bucket = months.setdefault(key, {"income": 0.0, "expense": 0.0})
        if tx.type is TransactionType.INCOME:
            bucket["income"] += coerce_amount(tx.amount)
        else:
            bucket["expense"] += coerce_amount(tx.amount)
    return [{"month": key, **months[key]} for key in sorted(months)]


def expense_by_category(transactions: Iterable[Transaction]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for tx in transactions:
        if tx.type is TransactionType.EXPENSE:
            totals[tx.category] = totals.get(tx.category, 0.0) + coerce_amount(tx.amount)
    return totals


def chart_points(transactions: Iterable[Transaction], limit: int = 10) -> List[dict]:
    """Oldest-first points for the trend chart, labelled ``MM/DD``."""
    ordered = list(transactions)[::-1][:limit]
    return [
        {"date": tx.date.strftime("%m/%d"), "amount": coerce_amount(tx.amount), "type": tx.type.value}
        for tx in ordered
    ]


def _parse_optional_type(value: Optional[str]) -> Optional[TransactionType]:
    if not value:
        return None
    try:
        return parse_type(value)
    except ValueError:
        return None


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None
