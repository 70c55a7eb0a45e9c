"""initial schema

Revision ID: 4b1e7d2c9a10
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4b1e7d2c9a10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "identity_user",
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("password_hash", sa.String(length=200), nullable=False),
        sa.Column(
            "role",
            sa.Enum("USER", "ADMIN", name="userrole", native_enum=False),
            nullable=False,
        ),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_identity_user_email"), "identity_user", ["email"], unique=True)
    op.create_index(op.f("ix_identity_user_role"), "identity_user", ["role"])
    op.create_index(op.f("ix_identity_user_created_at"), "identity_user", ["created_at"])

    op.create_table(
        "currency",
        sa.Column("code", sa.String(length=3), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_currency_code"), "currency", ["code"], unique=True)
    op.create_index(op.f("ix_currency_created_at"), "currency", ["created_at"])

    op.create_table(
        "currency_rate_snapshot",
        sa.Column("currency_id", sa.Uuid(), nullable=False),
        sa.Column("base_code", sa.String(length=3), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("change", sa.Float(), nullable=False),
        sa.Column("increasing", sa.Boolean(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["currency_id"], ["currency.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_currency_rate_snapshot_currency_id"), "currency_rate_snapshot", ["currency_id"]
    )
    op.create_index(
        op.f("ix_currency_rate_snapshot_timestamp"), "currency_rate_snapshot", ["timestamp"]
    )

    op.create_table(
        "conversion_history",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("from_currency", sa.String(length=3), nullable=False),
        sa.Column("to_currency", sa.String(length=3), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("converted_amount", sa.Float(), nullable=False),
        sa.Column("rate", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["identity_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_conversion_history_user_id"), "conversion_history", ["user_id"])
    op.create_index(
        op.f("ix_conversion_history_created_at"), "conversion_history", ["created_at"]
    )

    op.create_table(
        "message",
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("receiver_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["sender_id"], ["identity_user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["identity_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_message_sender_id"), "message", ["sender_id"])
    op.create_index(op.f("ix_message_receiver_id"), "message", ["receiver_id"])
    op.create_index(op.f("ix_message_created_at"), "message", ["created_at"])


def downgrade() -> None:
    op.drop_index(op.f("ix_message_created_at"), table_name="message")
    op.drop_index(op.f("ix_message_receiver_id"), table_name="message")
    op.drop_index(op.f("ix_message_sender_id"), table_name="message")
    op.drop_table("message")
    op.drop_index(op.f("ix_conversion_history_created_at"), table_name="conversion_history")
    op.drop_index(op.f("ix_conversion_history_user_id"), table_name="conversion_history")
    op.drop_table("conversion_history")
    op.drop_index(op.f("ix_currency_rate_snapshot_timestamp"), table_name="currency_rate_snapshot")
    op.drop_index(
        op.f("ix_currency_rate_snapshot_currency_id"), table_name="currency_rate_snapshot"
    )
    op.drop_table("currency_rate_snapshot")
    op.drop_index(op.f("ix_currency_created_at"), table_name="currency")
    op.drop_index(op.f("ix_currency_code"), table_name="currency")
    op.drop_table("currency")
    op.drop_index(op.f("ix_identity_user_created_at"), table_name="identity_user")
    op.drop_index(op.f("ix_identity_user_role"), table_name="identity_user")
    op.drop_index(op.f("ix_identity_user_email"), table_name="identity_user")
    op.drop_table("identity_user")
