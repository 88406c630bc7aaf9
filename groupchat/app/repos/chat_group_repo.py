"""
repos/chat_group_repo.py — Chat group, membership and message persistence.

Every operation is scoped to the owning user: a group, its member rows and
its messages are only visible through the user_id that created them.

Write operations run in exactly one transaction each (see repos/base.py).
Reads use the session as-is and never commit.

Records are returned as plain dicts built while the rows are still loaded,
so they stay valid after the commit expires the ORM instances.

Layer rules:
  - No Flask imports. Receives a SQLAlchemy session in the constructor.
  - Input is validated with the marshmallow schemas before any query runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from groupchat.app.errors import AppError, ErrorCode
from groupchat.app.models.chat_group import ChatGroup
from groupchat.app.models.chat_group_member import ChatGroupMember, MemberStatus
from groupchat.app.models.chat_group_message import ChatGroupMessage
from groupchat.app.repos.base import database_errors, isoformat, load, transaction
from groupchat.app.schemas.chat_group_schema import (
    GroupNameSchema,
    ListLimitSchema,
    MemberSchema,
    RemoveMembersSchema,
)
from groupchat.app.schemas.chat_message_schema import (
    ChatGroupMessageSchema,
    ChatGroupMessageUpdateSchema,
)

logger = logging.getLogger(__name__)


# ── Serialisers ────────────────────────────────────────────────────────────

def _build_group_dict(group: ChatGroup) -> dict:
    return {
        "id": group.id,
        "user_id": group.user_id,
        "name": group.name,
        "created_at": isoformat(group.created_at),
        "updated_at": isoformat(group.updated_at),
    }


def _build_member_dict(member: ChatGroupMember) -> dict:
    return {
        "id": member.id,
        "group_id": member.group_id,
        "user_id": member.user_id,
        "model_id": member.model_id,
        "model_name": member.model_name,
        "status": member.status,
        "created_at": isoformat(member.created_at),
        "updated_at": isoformat(member.updated_at),
    }


def _build_message_dict(message: ChatGroupMessage) -> dict:
    return {
        "id": message.id,
        "group_id": message.group_id,
        "user_id": message.user_id,
        "message": message.message,
        "role": message.role,
        "token_consumed": message.token_consumed,
        "quota_consumed": message.quota_consumed,
        "pid": message.pid,
        "member_id": message.member_id,
        "status": message.status,
        "created_at": isoformat(message.created_at),
        "updated_at": isoformat(message.updated_at),
    }


# ── Membership reconciliation ──────────────────────────────────────────────

@dataclass
class MembershipDiff:
    """Outcome of comparing the current members with the requested ones."""

    removed: list = field(default_factory=list)
    updated: list = field(default_factory=list)   # (current row, requested dict)
    added:   list = field(default_factory=list)


def reconcile_members(current: Iterable, requested: list[dict]) -> MembershipDiff:
    """
    Splits current and requested members into removed / updated / added.

    Matching is by member id:
      - a current member whose id is not requested is removed;
      - a current member whose id is requested is updated from the request
        (when an id is requested twice, the last entry wins);
      - a requested member without id (None / 0), or whose id is not one of
        the current members, is added as a new member.

    Pure function: nothing is written here.
    """
    current = list(current)
    requested_by_id = {m["id"]: m for m in requested if m.get("id")}
    current_ids = {m.id for m in current}

    diff = MembershipDiff()
    for member in current:
        change = requested_by_id.get(member.id)
        if change is None:
            diff.removed.append(member)
        else:
            diff.updated.append((member, change))

    diff.added = [
        m for m in requested
        if not m.get("id") or m["id"] not in current_ids
    ]
    return diff


# ── Repository ─────────────────────────────────────────────────────────────

class ChatGroupRepo:

    def __init__(self, session: Session, default_limit: int = 20) -> None:
        self.session = session
        self.default_limit = default_limit

    # ── Private helpers ────────────────────────────────────────────────────

    def _get_group_or_404(self, group_id: int, user_id: int) -> ChatGroup:
        """Returns the user's group or raises GROUP_NOT_FOUND (404)."""
        with database_errors("query group"):
            group = self.session.execute(
                select(ChatGroup).where(
                    ChatGroup.id == group_id,
                    ChatGroup.user_id == user_id,
                )
            ).scalar_one_or_none()

        if group is None:
            raise AppError(
                ErrorCode.GROUP_NOT_FOUND,
                f"Group {group_id} does not exist.",
                404,
            )
        return group

    def _paging(self, limit: int | None, start_id: int | None = None) -> dict:
        if limit is None:
            limit = self.default_limit
        return load(ListLimitSchema(), {"limit": limit, "start_id": start_id})

    def _insert_members(
            self,
            group_id: int,
            user_id: int,
            members: list[dict],
    ) -> list[ChatGroupMember]:
        rows = [
            ChatGroupMember(
                group_id=group_id,
                user_id=user_id,
                model_id=m["model_id"],
                model_name=m["model_name"],
                status=MemberStatus.NORMAL,
            )
            for m in members
        ]
        self.session.add_all(rows)
        with database_errors("create group member"):
            self.session.flush()
        return rows

    # ── Groups ─────────────────────────────────────────────────────────────

    def create_group(
            self,
            user_id: int,
            name: str,
            members: list[Mapping] | None = None,
    ) -> int:
        """
        Creates a group owned by user_id together with its initial members.

        Group and members are inserted in one transaction: either all rows
        exist afterwards or none do.

        Returns: the new group id.
        """
        data = load(GroupNameSchema(), {"name": name})
        new_members = load(MemberSchema(many=True), list(members or []), prefix="members")

        with transaction(self.session, "create group"):
            group = ChatGroup(user_id=user_id, name=data["name"])
            self.session.add(group)
            self.session.flush()  # populate group.id before creating members

            self._insert_members(group.id, user_id, new_members)
            group_id = group.id

        logger.info(
            "created chat group %s for user %s with %d members",
            group_id, user_id, len(new_members),
        )
        return group_id

    def update_group(self, group_id: int, user_id: int, name: str) -> None:
        """
        Renames a group. Nothing is written when the name is unchanged.

        Raises:
          AppError(GROUP_NOT_FOUND, 404) — group missing or owned by another user
        """
        data = load(GroupNameSchema(), {"name": name})

        with transaction(self.session, "update group"):
            group = self._get_group_or_404(group_id, user_id)
            renamed = group.name != data["name"]
            if renamed:
                group.name = data["name"]
                with database_errors("save group"):
                    self.session.flush()

        if renamed:
            logger.info("renamed chat group %s", group_id)

    def get_group(self, group_id: int, user_id: int) -> dict:
        """
        Returns {"group": {...}, "members": [...]} with the NORMAL members
        of the group in id order.
        """
        group = self._get_group_or_404(group_id, user_id)

        with database_errors("query group members"):
            members = self.session.execute(
                select(ChatGroupMember)
                .where(
                    ChatGroupMember.group_id == group_id,
                    ChatGroupMember.status == MemberStatus.NORMAL,
                )
                .order_by(ChatGroupMember.id.asc())
            ).scalars().all()

        return {
            "group": _build_group_dict(group),
            "members": [_build_member_dict(m) for m in members],
        }

    def groups(self, user_id: int, limit: int | None = None) -> list[dict]:
        """Returns the user's groups, most recently created first."""
        paging = self._paging(limit)

        with database_errors("query groups"):
            rows = self.session.execute(
                select(ChatGroup)
                .where(ChatGroup.user_id == user_id)
                .order_by(ChatGroup.id.desc())
                .limit(paging["limit"])
            ).scalars().all()

        return [_build_group_dict(g) for g in rows]

    def delete_group(self, group_id: int, user_id: int) -> None:
        """Deletes a group with all of its member rows and messages."""
        with transaction(self.session, "delete group"):
            self._get_group_or_404(group_id, user_id)

            with database_errors("delete group messages"):
                self.session.execute(
                    delete(ChatGroupMessage).where(ChatGroupMessage.group_id == group_id)
                )
            with database_errors("delete group members"):
                self.session.execute(
                    delete(ChatGroupMember).where(ChatGroupMember.group_id == group_id)
                )
            self.session.execute(
                delete(ChatGroup).where(
                    ChatGroup.id == group_id,
                    ChatGroup.user_id == user_id,
                )
            )

        logger.info("deleted chat group %s for user %s", group_id, user_id)

    # ── Members ────────────────────────────────────────────────────────────

    def update_group_members(
            self,
            group_id: int,
            user_id: int,
            members: list[Mapping],
    ) -> None:
        """
        Makes the group's NORMAL members match `members`.

        See reconcile_members() for the matching rules. Removed members are
        soft-deleted (status DELETED); updated members get the requested
        model_id / model_name; new members are inserted as NORMAL.
        """
        requested = load(MemberSchema(many=True), list(members or []), prefix="members")

        with transaction(self.session, "update group members"):
            self._get_group_or_404(group_id, user_id)

            with database_errors("query group members"):
                current = self.session.execute(
                    select(ChatGroupMember)
                    .where(
                        ChatGroupMember.group_id == group_id,
                        ChatGroupMember.status == MemberStatus.NORMAL,
                        ChatGroupMember.user_id == user_id,
                    )
                    .order_by(ChatGroupMember.id.asc())
                ).scalars().all()

            diff = reconcile_members(current, requested)
            logger.debug(
                "group %s members: %d removed, %d updated, %d added",
                group_id, len(diff.removed), len(diff.updated), len(diff.added),
            )

            for member in diff.removed:
                member.status = MemberStatus.DELETED
            for member, change in diff.updated:
                member.model_id = change["model_id"]
                member.model_name = change["model_name"]

            with database_errors("save group member"):
                self.session.flush()
            self._insert_members(group_id, user_id, diff.added)

        logger.info(
            "reconciled members of chat group %s (%d removed, %d updated, %d added)",
            group_id, len(diff.removed), len(diff.updated), len(diff.added),
        )

    def add_members_to_group(
            self,
            group_id: int,
            user_id: int,
            members: list[Mapping],
    ) -> list[int]:
        """
        Adds members to an existing group.

        Returns: ids of the new member rows, in input order.
        """
        new_members = load(MemberSchema(many=True), list(members or []), prefix="members")

        with transaction(self.session, "add group members"):
            self._get_group_or_404(group_id, user_id)
            rows = self._insert_members(group_id, user_id, new_members)
            member_ids = [row.id for row in rows]

        logger.info("added %d members to chat group %s", len(member_ids), group_id)
        return member_ids

    def remove_members_from_group(
            self,
            group_id: int,
            user_id: int,
            member_ids: list[int],
    ) -> int:
        """
        Soft-deletes the given NORMAL members of the group.

        An empty id list is a no-op and opens no transaction. Ids that do not
        belong to the group, or are already deleted, are ignored.

        Returns: number of members removed.
        """
        if not member_ids:
            return 0

        data = load(RemoveMembersSchema(), {"member_ids": list(member_ids)})

        with transaction(self.session, "remove group members"):
            result = self.session.execute(
                update(ChatGroupMember)
                .where(
                    ChatGroupMember.group_id == group_id,
                    ChatGroupMember.user_id == user_id,
                    ChatGroupMember.status == MemberStatus.NORMAL,
                    ChatGroupMember.id.in_(data["member_ids"]),
                )
                .values(status=MemberStatus.DELETED)
            )
            removed = result.rowcount

        logger.info("removed %d members from chat group %s", removed, group_id)
        return removed

    # ── Messages ───────────────────────────────────────────────────────────

    def add_chat_message(self, group_id: int, user_id: int, msg: Mapping) -> int:
        """
        Stores a message in the group.

        Returns: the new message id.
        """
        data = load(ChatGroupMessageSchema(), dict(msg))

        with transaction(self.session, "save chat message"):
            message = ChatGroupMessage(group_id=group_id, user_id=user_id, **data)
            self.session.add(message)
            self.session.flush()
            message_id = message.id

        logger.info("saved message %s in chat group %s", message_id, group_id)
        return message_id

    def get_chat_message(self, group_id: int, user_id: int, message_id: int) -> dict:
        """
        Raises:
          AppError(MESSAGE_NOT_FOUND, 404) — no such message for this group/user
        """
        with database_errors("query chat message"):
            message = self.session.execute(
                select(ChatGroupMessage).where(
                    ChatGroupMessage.group_id == group_id,
                    ChatGroupMessage.user_id == user_id,
                    ChatGroupMessage.id == message_id,
                )
            ).scalar_one_or_none()

        if message is None:
            raise AppError(
                ErrorCode.MESSAGE_NOT_FOUND,
                f"Message {message_id} does not exist.",
                404,
            )
        return _build_message_dict(message)

    def get_chat_messages(
            self,
            group_id: int,
            limit: int | None = None,
            start_id: int | None = None,
    ) -> list[dict]:
        """
        Returns the group's messages, newest first.

        With start_id, only messages older than it (id < start_id) are
        returned, so callers can page back through the history.
        """
        paging = self._paging(limit, start_id)

        stmt = select(ChatGroupMessage).where(ChatGroupMessage.group_id == group_id)
        if paging["start_id"] is not None:
            stmt = stmt.where(ChatGroupMessage.id < paging["start_id"])
        stmt = stmt.order_by(ChatGroupMessage.id.desc()).limit(paging["limit"])

        with database_errors("query chat messages"):
            rows = self.session.execute(stmt).scalars().all()

        return [_build_message_dict(m) for m in rows]

    def update_chat_message(
            self,
            group_id: int,
            user_id: int,
            message_id: int,
            update_data: Mapping,
    ) -> int:
        """
        Overwrites message, token_consumed, quota_consumed and status.

        Returns: number of rows updated (0 when the message does not exist).
        """
        data = load(ChatGroupMessageUpdateSchema(), dict(update_data))

        with transaction(self.session, "update chat message"):
            result = self.session.execute(
                update(ChatGroupMessage)
                .where(
                    ChatGroupMessage.group_id == group_id,
                    ChatGroupMessage.user_id == user_id,
                    ChatGroupMessage.id == message_id,
                )
                .values(**data)
            )
            updated = result.rowcount

        logger.info(
            "updated message %s in chat group %s (%d rows)", message_id, group_id, updated
        )
        return updated

    def delete_chat_message(self, group_id: int, user_id: int, message_id: int) -> int:
        """Deletes one message. Deleting a missing message is not an error."""
        with transaction(self.session, "delete chat message"):
            result = self.session.execute(
                delete(ChatGroupMessage).where(
                    ChatGroupMessage.group_id == group_id,
                    ChatGroupMessage.user_id == user_id,
                    ChatGroupMessage.id == message_id,
                )
            )
            deleted = result.rowcount

        logger.info(
            "deleted message %s from chat group %s (%d rows)", message_id, group_id, deleted
        )
        return deleted

    def delete_all_chat_messages(self, group_id: int, user_id: int) -> int:
        """Clears the user's message history in a group."""
        with transaction(self.session, "delete chat messages"):
            result = self.session.execute(
                delete(ChatGroupMessage).where(
                    ChatGroupMessage.group_id == group_id,
                    ChatGroupMessage.user_id == user_id,
                )
            )
            deleted = result.rowcount

        logger.info("cleared %d messages from chat group %s", deleted, group_id)
        return deleted
