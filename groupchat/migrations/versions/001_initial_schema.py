"""Initial schema — chat groups, members and messages.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. chat_groups
  2. chat_group_members, chat_group_messages (both reference chat_groups)
  3. Indexes

ON DELETE policies:
  chat_group_members.group_id   → CASCADE  (members owned by group)
  chat_group_messages.group_id  → CASCADE  (history owned by group)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:

    # ── Step 1: chat_groups ────────────────────────────────────────────────

    op.create_table(
        "chat_groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_chat_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_chat_groups_name_nonempty",
        ),
    )

    # ── Step 2: chat_group_members ─────────────────────────────────────────
    # status: 1 = normal, 2 = deleted (soft delete).

    op.create_table(
        "chat_group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey(
                "chat_groups.id",
                ondelete="CASCADE",
                name="fk_chat_group_members_group",
            ),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("model_id", sa.String(255), nullable=False),
        sa.Column("model_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_chat_group_members"),
    )

    # ── Step 3: chat_group_messages ────────────────────────────────────────
    # status: 0 = waiting, 1 = succeed, 2 = failed.
    # role:   1 = user, 2 = assistant.

    op.create_table(
        "chat_group_messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey(
                "chat_groups.id",
                ondelete="CASCADE",
                name="fk_chat_group_messages_group",
            ),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("role", sa.Integer(), nullable=False),
        sa.Column("token_consumed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quota_consumed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pid", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("member_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_chat_group_messages"),
        sa.CheckConstraint(
            "token_consumed >= 0",
            name="ck_chat_group_messages_token_nonneg",
        ),
        sa.CheckConstraint(
            "quota_consumed >= 0",
            name="ck_chat_group_messages_quota_nonneg",
        ),
    )

    # ── Step 4: Indexes ────────────────────────────────────────────────────

    # chat_groups: list a user's groups.
    op.create_index(
        "ix_chat_groups_user_id",
        "chat_groups",
        ["user_id"],
    )

    # chat_group_members: every read filters on (group_id, status).
    op.create_index(
        "idx_chat_group_members_group_status",
        "chat_group_members",
        ["group_id", "status"],
    )

    # chat_group_messages: history is read newest-first per group.
    op.create_index(
        "idx_chat_group_messages_group_id",
        "chat_group_messages",
        ["group_id", "id"],
    )


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.

    Provided for local development reset. Prefer a corrective migration
    over a downgrade on shared databases.
    """
    op.drop_index("idx_chat_group_messages_group_id",    table_name="chat_group_messages")
    op.drop_index("idx_chat_group_members_group_status", table_name="chat_group_members")
    op.drop_index("ix_chat_groups_user_id",              table_name="chat_groups")

    op.drop_table("chat_group_messages")
    op.drop_table("chat_group_members")
    op.drop_table("chat_groups")
