"""Totals and category grouping over a set of ledger records.

Everything here is pure: the functions accept any iterable of objects with
``kind``, ``category`` and ``amount`` attributes (ORM rows or plain
dataclasses) and never touch the database.
"""

from dataclasses import dataclass, field
from typing import Iterable, Protocol

from models import TransactionType


class LedgerEntry(Protocol):
    kind: TransactionType
    category: str
    amount: float


def _sum_of(records: Iterable[LedgerEntry], kind: TransactionType) -> float:
    return sum((r.amount for r in records if r.kind == kind), 0.0)


def total_income(records: Iterable[LedgerEntry]) -> float:
    return _sum_of(records, TransactionType.income)


def total_expense(records: Iterable[LedgerEntry]) -> float:
    return _sum_of(records, TransactionType.expense)


def balance(records: Iterable[LedgerEntry]) -> float:
    records = list(records)
    return total_income(records) - total_expense(records)


def category_breakdown(records: Iterable[LedgerEntry]) -> dict[str, float]:
    """Sum expense amounts per category, keeping first-seen order."""
    breakdown: dict[str, float] = {}
    for record in records:
        if record.kind != TransactionType.expense:
            continue
        breakdown[record.category] = breakdown.get(record.category, 0.0) + record.amount
    return breakdown


@dataclass
class Summary:
    total_income: float = 0.0
    total_expense: float = 0.0
    balance: float = 0.0
    breakdown: dict[str, float] = field(default_factory=dict)


def summarize(records: Iterable[LedgerEntry]) -> Summary:
    records = list(records)
    income = total_income(records)
    expense = total_expense(records)
    return Summary(
        total_income=income,
        total_expense=expense,
        balance=income - expense,
        breakdown=category_breakdown(records),
    )


def breakdown_rows(breakdown: dict[str, float]) -> list[dict[str, object]]:
    # Bar widths are relative to the largest category.
    peak = max(breakdown.values(), default=0.0)
    rows = []
    for name, amount in breakdown.items():
        percent = (amount / peak * 100) if peak else 0
        rows.append({"name": name, "amount": amount, "percent": percent})
    return rows
