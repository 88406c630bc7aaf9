"""
models/chat_group_message.py — ChatGroupMessage table definition.

One row per message in a group: the user's prompts (member_id = 0) and the
answers of each member model (pid points at the prompt being answered).
Token and quota consumption are recorded per message for billing.

Key design points:
  - role and status are integers; MessageRole / MessageStatus hold the values.
  - token_consumed / quota_consumed are non-negative (CHECK constraints).
  - pid and member_id default to 0, meaning "no parent" / "the user".
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupchat.app.extensions import db


# ── Enum Definitions ───────────────────────────────────────────────────────
# Imported by schemas and the repository; do not repeat the raw integers.

class MessageRole(enum.IntEnum):
    USER      = 1
    ASSISTANT = 2


class MessageStatus(enum.IntEnum):
    WAITING = 0
    SUCCEED = 1
    FAILED  = 2


class ChatGroupMessage(db.Model):
    __tablename__ = "chat_group_messages"

    __table_args__ = (
        CheckConstraint(
            "token_consumed >= 0",
            name="ck_chat_group_messages_token_nonneg",
        ),
        CheckConstraint(
            "quota_consumed >= 0",
            name="ck_chat_group_messages_quota_nonneg",
        ),
        # History is always read newest-first within one group.
        Index("idx_chat_group_messages_group_id", "group_id", "id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("chat_groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[int] = mapped_column(Integer, nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)

    role: Mapped[int] = mapped_column(Integer, nullable=False)

    token_consumed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    quota_consumed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    pid: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    member_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    status: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=MessageStatus.WAITING,
        server_default=str(int(MessageStatus.WAITING)),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["ChatGroup"] = relationship(  # noqa: F821
        "ChatGroup",
        back_populates="messages",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ChatGroupMessage id={self.id} "
            f"group_id={self.group_id} "
            f"role={self.role} "
            f"status={self.status}>"
        )
