from __future__ import annotations

import logging
import math
import threading
from datetime import date
from typing import Callable, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import StoreError, ValidationError
from models import INCOME_CATEGORY_LABELS, IncomePeriod, Transaction, TransactionType
from periods import Scope, resolve_scope, today_local

logger = logging.getLogger(__name__)

# Held by the full reset and by the archival sweep so the two never interleave
# inside one process.
maintenance_lock = threading.Lock()

MAX_CATEGORY_LENGTH = 100
MAX_NOTE_LENGTH = 500


def _require_amount(value: object, missing_message: str) -> float:
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(missing_message)
    try:
        amount = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError("Amount must be a number.") from exc
    if not math.isfinite(amount):
        raise ValidationError("Amount must be a finite number.")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero.")
    return amount


def _coerce_period(value: Union[IncomePeriod, str, None]) -> IncomePeriod:
    if value is None or value == "":
        return IncomePeriod.monthly
    try:
        return IncomePeriod(value)
    except ValueError as exc:
        raise ValidationError("Period must be 'monthly' or 'yearly'.") from exc


def _clean_note(note: Optional[str]) -> str:
    note = (note or "").strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"Note must be at most {MAX_NOTE_LENGTH} characters.")
    return note


class TransactionService:
    def __init__(
        self, session: Session, clock: Optional[Callable[[], date]] = None
    ) -> None:
        self.session = session
        self.clock = clock or today_local

    def scope(self) -> Scope:
        return resolve_scope(self.clock())

    def _find_income(self, scope: Scope, period: IncomePeriod) -> Optional[Transaction]:
        stmt = select(Transaction).where(
            Transaction.kind == TransactionType.income,
            Transaction.month == scope.month,
            Transaction.year == scope.year,
            Transaction.period == period,
        )
        return self.session.scalars(stmt).first()

    def _overwrite_income(self, txn: Transaction, amount: float, note: str) -> None:
        txn.amount = amount
        txn.note = note
        self.session.commit()
        logger.info(
            f"income_updated: id={txn.id} period={txn.period.value} "
            f"scope={txn.year}-{txn.month:02d}"
        )

    def add_income(
        self,
        amount: object,
        period: Union[IncomePeriod, str, None] = IncomePeriod.monthly,
        note: Optional[str] = "",
    ) -> tuple[Transaction, bool]:
        """Record the income for the current month, or overwrite it.

        At most one income row exists per (month, year, period). Returns the
        row and whether it was newly created.
        """
        value = _require_amount(amount, "Income amount is required.")
        income_period = _coerce_period(period)
        note = _clean_note(note)
        scope = self.scope()
        try:
            existing = self._find_income(scope, income_period)
            if existing is not None:
                self._overwrite_income(existing, value, note)
                return existing, False

            txn = Transaction(
                kind=TransactionType.income,
                category=INCOME_CATEGORY_LABELS[income_period],
                amount=value,
                note=note,
                period=income_period,
                month=scope.month,
                year=scope.year,
            )
            self.session.add(txn)
            try:
                self.session.commit()
            except IntegrityError:
                # A concurrent request inserted the same income first.
                self.session.rollback()
                existing = self._find_income(scope, income_period)
                if existing is None:
                    raise
                self._overwrite_income(existing, value, note)
                return existing, False
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError("Failed to save income") from exc

        logger.info(
            f"income_created: id={txn.id} period={income_period.value} "
            f"scope={scope.year}-{scope.month:02d}"
        )
        return txn, True

    def add_expense(
        self, category: Optional[str], amount: object, note: Optional[str] = ""
    ) -> Transaction:
        category = (category or "").strip() if isinstance(category, str) else ""
        if not category or amount is None or amount == "":
            raise ValidationError("Category and amount are required.")
        if len(category) > MAX_CATEGORY_LENGTH:
            raise ValidationError(
                f"Category must be at most {MAX_CATEGORY_LENGTH} characters."
            )
        value = _require_amount(amount, "Category and amount are required.")
        note = _clean_note(note)
        scope = self.scope()
        txn = Transaction(
            kind=TransactionType.expense,
            category=category,
            amount=value,
            note=note,
            month=scope.month,
            year=scope.year,
        )
        try:
            self.session.add(txn)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError("Failed to save expense") from exc
        logger.info(
            f"expense_created: id={txn.id} category={category!r} "
            f"scope={scope.year}-{scope.month:02d}"
        )
        return txn

    def for_scope(self, scope: Scope) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.month == scope.month, Transaction.year == scope.year)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError("Failed to load transactions") from exc

    def current(self) -> list[Transaction]:
        return self.for_scope(self.scope())

    def reset_all(self) -> int:
        with maintenance_lock:
            try:
                result = self.session.execute(delete(Transaction))
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                raise StoreError("Failed to reset transactions") from exc
        deleted = result.rowcount or 0
        logger.warning(f"ledger_reset: deleted={deleted}")
        return deleted
