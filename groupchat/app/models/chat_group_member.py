"""
models/chat_group_member.py — ChatGroupMember table definition.

A member is an AI model taking part in a chat group. Members are never
physically removed by membership operations; removal flips `status` to
MemberStatus.DELETED so that old messages can still point at them.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupchat.app.extensions import db


class MemberStatus(enum.IntEnum):
    """Stored as a plain integer; the values are part of the storage contract."""
    NORMAL  = 1
    DELETED = 2


class ChatGroupMember(db.Model):
    __tablename__ = "chat_group_members"

    __table_args__ = (
        # Every member read filters on (group_id, status).
        Index("idx_chat_group_members_group_status", "group_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("chat_groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Owner of the group this row belongs to; scopes every member write.
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    model_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    model_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        server_default="",
    )

    status: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=MemberStatus.NORMAL,
        server_default=str(int(MemberStatus.NORMAL)),
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
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ChatGroupMember id={self.id} "
            f"group_id={self.group_id} "
            f"model_id={self.model_id!r} "
            f"status={self.status}>"
        )
