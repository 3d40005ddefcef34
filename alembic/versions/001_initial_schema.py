"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "profiles" in existing_tables:
        return

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("display_name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("credits", sa.Integer, nullable=False, server_default="0"),
        sa.Column("api_token_hash", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_profiles_api_token_hash", "profiles", ["api_token_hash"], unique=True)

    op.create_table(
        "remix_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("profiles.user_id"), nullable=False),
        sa.Column("source_repo", sa.String(200), nullable=False),
        sa.Column("target_repo", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("logs", sa.JSON, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_remix_history_user_id", "remix_history", ["user_id"])
    op.create_index("ix_remix_history_status", "remix_history", ["status"])
    op.create_index("ix_remix_history_created_at", "remix_history", ["created_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "history_id",
            sa.String(36),
            sa.ForeignKey("remix_history.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True)),
        sa.Column("detail", sa.Text, nullable=True),
    )
    op.create_index("ix_audit_log_history_id", "audit_log", ["history_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("profiles.user_id"), nullable=False),
        sa.Column("amount_cents", sa.Integer, nullable=False),
        sa.Column("credits_purchased", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("mp_payment_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_mp_payment_id", "payments", ["mp_payment_id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("audit_log")
    op.drop_table("remix_history")
    op.drop_table("profiles")
