"""
schemas/chat_message_schema.py — Marshmallow schemas for chat message input.

Consumption counters (token_consumed, quota_consumed) are non-negative
integers, mirroring the CHECK constraints on chat_group_messages.
role and status must be one of the MessageRole / MessageStatus values.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from groupchat.app.models.chat_group_message import MessageRole, MessageStatus


_ROLES    = [int(r) for r in MessageRole]
_STATUSES = [int(s) for s in MessageStatus]


def _counter(**kwargs) -> fields.Int:
    return fields.Int(
        strict=True,
        validate=validate.Range(min=0, error="Must be a non-negative integer."),
        **kwargs,
    )


class ChatGroupMessageSchema(Schema):
    """A new message to store in a group."""

    class Meta:
        unknown = EXCLUDE

    message = fields.Str(required=True)

    role = fields.Int(
        required=True,
        strict=True,
        validate=validate.OneOf(_ROLES, error="role must be one of {choices}."),
    )

    token_consumed = _counter(load_default=0)
    quota_consumed = _counter(load_default=0)

    # 0 = no parent message / sent by the user.
    pid       = _counter(load_default=0)
    member_id = _counter(load_default=0)

    status = fields.Int(
        load_default=int(MessageStatus.WAITING),
        strict=True,
        validate=validate.OneOf(_STATUSES, error="status must be one of {choices}."),
    )


class ChatGroupMessageUpdateSchema(Schema):
    """
    Update of an existing message.

    All four fields are always written. Omitted fields fall back to their
    zero value, so callers must send the full final state.
    """

    class Meta:
        unknown = EXCLUDE

    message        = fields.Str(load_default="")
    token_consumed = _counter(load_default=0)
    quota_consumed = _counter(load_default=0)

    status = fields.Int(
        load_default=int(MessageStatus.WAITING),
        strict=True,
        validate=validate.OneOf(_STATUSES, error="status must be one of {choices}."),
    )
