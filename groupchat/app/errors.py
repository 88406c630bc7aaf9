"""
errors.py — AppError base class and error code registry.

Every error raised by the group chat repository uses a code defined here.
Do not raise strings or generic exceptions from repository code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Database failures are never leaked raw; they are wrapped in DATABASE_ERROR
    with the original exception chained as __cause__.
"""

from __future__ import annotations

from marshmallow import ValidationError


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which input field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# IMPORTANT: these string values are part of the public contract.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Input Errors (400) ─────────────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    MESSAGE_NOT_FOUND          = "MESSAGE_NOT_FOUND"

    # ── System Errors (500) ────────────────────────────────────────────────
    DATABASE_ERROR             = "DATABASE_ERROR"
    INTERNAL_ERROR             = "INTERNAL_ERROR"


def from_validation_error(
        error: ValidationError,
        prefix: str | None = None,
) -> AppError:
    """
    Converts a marshmallow ValidationError into a 400 AppError.

    Only the FIRST offending field is reported ("one error, not many").
    Nested errors (e.g. members[2].model_id) are flattened into a dotted
    field path: "members.2.model_id". `prefix` names the argument the data
    came from when the schema was loaded with many=True.
    """
    field, raw_message = _first_error(error.messages, prefix)

    if str(raw_message).startswith("Missing data for required field"):
        code = ErrorCode.MISSING_FIELD
    else:
        code = ErrorCode.INVALID_FIELD

    return AppError(code, str(raw_message), 400, field=field)


def _first_error(messages, prefix: str | None = None) -> tuple[str | None, str]:
    """Walks a marshmallow messages structure down to its first leaf message."""
    if isinstance(messages, dict):
        for key, value in messages.items():
            if key == "_schema":
                name = prefix
            elif prefix is None:
                name = str(key)
            else:
                name = f"{prefix}.{key}"
            return _first_error(value, name)
        return prefix, "Invalid input."

    if isinstance(messages, list):
        if not messages:
            return prefix, "Invalid value."
        return _first_error(messages[0], prefix)

    return prefix, str(messages)
