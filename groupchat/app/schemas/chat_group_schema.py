"""
schemas/chat_group_schema.py — Marshmallow schemas for group and membership input.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - repos/chat_group_repo.py:
      - GROUP_NOT_FOUND (group ownership requires a DB lookup)
      - which members are new / kept / dropped (requires the current rows)

IMPORTANT: Inherits from marshmallow.Schema directly. See extensions.py.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate


# ── Shared non-empty string validator ─────────────────────────────────────
#
# validate.Length(min=1) alone allows whitespace-only strings like "   ".
# This validator strips first, mirroring CHECK(LENGTH(TRIM(name)) > 0).
# ──────────────────────────────────────────────────────────────────────────

def validate_non_empty_after_trim(value: str) -> None:
    """Raises ValidationError if the string is blank or contains only whitespace."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class MemberSchema(Schema):
    """
    A chat group member as supplied by callers.

    id is the existing member row id. Omitted, null or 0 means "new member";
    update_group_members() uses it to tell kept members from new ones.
    """

    class Meta:
        unknown = EXCLUDE

    id = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        validate=validate.Range(min=0, error="id must not be negative."),
    )

    model_id = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="model_id must be between 1 and 255 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )

    model_name = fields.Str(
        load_default="",
        validate=validate.Length(
            max=255,
            error="model_name must be at most 255 characters.",
        ),
    )


class GroupNameSchema(Schema):
    """Group name: non-empty after trim, max 255 chars."""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Group name must be between 1 and 255 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )


class ListLimitSchema(Schema):
    """Paging arguments shared by groups() and get_chat_messages()."""

    limit = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="limit must be a positive integer."),
    )

    # Only messages older than start_id are returned when set.
    start_id = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        validate=validate.Range(min=1, error="start_id must be a positive integer."),
    )


class RemoveMembersSchema(Schema):
    """Ids of the member rows to soft-delete."""

    member_ids = fields.List(
        fields.Int(
            strict=True,
            validate=validate.Range(min=1, error="member id must be a positive integer."),
        ),
        required=True,
    )
