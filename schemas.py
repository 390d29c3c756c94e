from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import IncomePeriod, Transaction, TransactionType


class IncomeIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Presence and range are checked by the service so that a missing amount
    # and a zero amount produce the same kind of error.
    amount: Optional[float] = None
    period: IncomePeriod = IncomePeriod.monthly
    note: Optional[str] = Field(default="", max_length=500)


class ExpenseIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    category: Optional[str] = None
    amount: Optional[float] = None
    note: Optional[str] = Field(default="", max_length=500)


class TransactionOut(BaseModel):
    id: int
    owner_id: Optional[int] = None
    kind: TransactionType
    category: str
    amount: float
    note: str
    period: IncomePeriod
    month: int
    year: int
    created_at: datetime

    @classmethod
    def from_record(cls, txn: Transaction) -> "TransactionOut":
        return cls(
            id=txn.id,
            owner_id=txn.user_id,
            kind=txn.kind,
            category=txn.category,
            amount=txn.amount,
            note=txn.note or "",
            period=txn.period,
            month=txn.month,
            year=txn.year,
            created_at=txn.created_at,
        )


class TransactionResult(BaseModel):
    message: str
    data: TransactionOut


class SummaryOut(BaseModel):
    month: int
    year: int
    total_income: float
    total_expense: float
    balance: float
    breakdown: dict[str, float]


class InsightOut(BaseModel):
    insight: str
