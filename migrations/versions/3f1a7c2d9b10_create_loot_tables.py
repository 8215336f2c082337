"""create loot, ledger and audit tables

Revision ID: 3f1a7c2d9b10
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "3f1a7c2d9b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=64)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
        sa.Column("scopes", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("last_login_at", sa.DateTime()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # options, classes, counters
    op.create_table(
        "loot_options",
        sa.Column("option_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("quantity_per_open", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("class_probabilities", sa.JSON(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_table(
        "class_records",
        sa.Column("class_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("preminted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("token_id", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "supply_counters",
        sa.Column("option_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("amount_opened", sa.Integer(), nullable=False, server_default="0"),
    )

    # item ledger
    op.create_table(
        "token_lots",
        sa.Column("token_id", sa.Integer(), primary_key=True),
        sa.Column("creator", sa.String(length=64), nullable=False),
        sa.Column("total_supply", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "token_balances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner", sa.String(length=64), nullable=False),
        sa.Column("token_id", sa.Integer(), sa.ForeignKey("token_lots.token_id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("owner", "token_id", name="uq_balance_owner_token"),
    )
    op.create_index("ix_token_balances_owner", "token_balances", ["owner"])
    op.create_index("ix_token_balances_token_id", "token_balances", ["token_id"])
    op.create_table(
        "operator_approvals",
        sa.Column("owner", sa.String(length=64), primary_key=True),
        sa.Column("operator", sa.String(length=64), primary_key=True),
        sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    # audit + events
    op.create_table(
        "admin_audit_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("actor", sa.String(length=64)),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("target_type", sa.String(length=64)),
        sa.Column("target_id", sa.String(length=64)),
        sa.Column("payload", sa.JSON()),
        sa.Column("ip", sa.String(length=64)),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_table(
        "open_events",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("option_id", sa.Integer(), nullable=False),
        sa.Column("recipient", sa.String(length=64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("items_issued", sa.Integer(), nullable=False),
        sa.Column("classes", sa.JSON(), nullable=False),
        sa.Column("token_ids", sa.JSON(), nullable=False),
        sa.Column("payment", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_open_events_option_id", "open_events", ["option_id"])
    op.create_index("ix_open_events_recipient", "open_events", ["recipient"])

    # system
    op.create_table(
        "system_state",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("paused", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("treasury_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_table(
        "withdrawals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor", sa.String(length=64)),
        sa.Column("recipient", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )


def downgrade() -> None:
    for table in (
        "withdrawals", "system_state", "open_events", "admin_audit_logs",
        "operator_approvals", "token_balances", "token_lots",
        "supply_counters", "class_records", "loot_options", "users",
    ):
        op.drop_table(table)
