from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    Float,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class IncomePeriod(str, Enum):
    monthly = "monthly"
    yearly = "yearly"


INCOME_CATEGORY_LABELS = {
    IncomePeriod.monthly: "Monthly Income",
    IncomePeriod.yearly: "Yearly Income",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Single-user deployment: always NULL.
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    kind: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    period: Mapped[IncomePeriod] = mapped_column(
        SAEnum(IncomePeriod), nullable=False, default=IncomePeriod.monthly
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_transactions_scope_created", "year", "month", "created_at"),
        Index(
            "uq_transactions_income_scope_period",
            "kind",
            "month",
            "year",
            "period",
            unique=True,
            sqlite_where=text("kind = 'income'"),
            postgresql_where=text("kind = 'income'"),
        ),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_transactions_month_range"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} kind={self.kind} category={self.category!r} "
            f"amount={self.amount} {self.year}-{self.month:02d}>"
        )
