"""
models/chat_group.py — ChatGroup table definition.

A chat group is owned by a single user and holds a set of AI model members
plus the message history exchanged with them.
No business logic. No imports from repositories.

FK policy: members and messages are ON DELETE CASCADE: deleting a group
removes its whole history.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupchat.app.extensions import db


class ChatGroup(db.Model):
    __tablename__ = "chat_groups"

    __table_args__ = (
        # Also enforced by GroupNameSchema; the schema is the primary gate.
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_chat_groups_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Owner. Users live in another service, so there is no FK here.
    user_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,   # idx_chat_groups_user
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
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

    members: Mapped[list["ChatGroupMember"]] = relationship(  # noqa: F821
        "ChatGroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    messages: Mapped[list["ChatGroupMessage"]] = relationship(  # noqa: F821
        "ChatGroupMessage",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ChatGroup id={self.id} name={self.name!r}>"
