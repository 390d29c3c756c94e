"""initial ledger schema

Revision ID: 202610010900
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer()),
        sa.Column(
            "kind",
            sa.Enum("income", "expense", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "period",
            sa.Enum("monthly", "yearly", name="incomeperiod"),
            nullable=False,
            server_default="monthly",
        ),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint(
            "month BETWEEN 1 AND 12", name="ck_transactions_month_range"
        ),
    )
    op.create_index(
        "ix_transactions_scope_created",
        "transactions",
        ["year", "month", "created_at"],
    )
    op.create_index(
        "uq_transactions_income_scope_period",
        "transactions",
        ["kind", "month", "year", "period"],
        unique=True,
        sqlite_where=sa.text("kind = 'income'"),
        postgresql_where=sa.text("kind = 'income'"),
    )


def downgrade():
    op.drop_index("uq_transactions_income_scope_period", table_name="transactions")
    op.drop_index("ix_transactions_scope_created", table_name="transactions")
    op.drop_table("transactions")
    sa.Enum(name="incomeperiod").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="transactiontype").drop(op.get_bind(), checkfirst=True)
