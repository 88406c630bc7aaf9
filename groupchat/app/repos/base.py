"""
repos/base.py — Transaction and validation helpers shared by repositories.

Every write in a repository runs inside transaction(): the body either
completes and is committed, or anything raised rolls the whole unit back.
Raw SQLAlchemy errors never cross the repository boundary; they are wrapped
into AppError(DATABASE_ERROR) naming the action that failed. Anything else
unexpected becomes AppError(INTERNAL_ERROR).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from marshmallow import Schema, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from groupchat.app.errors import AppError, ErrorCode, from_validation_error

logger = logging.getLogger(__name__)


@contextmanager
def database_errors(action: str) -> Iterator[None]:
    """
    Converts SQLAlchemyError raised in the block into DATABASE_ERROR (500).

    Usage:
        with database_errors("query group"):
            group = session.execute(stmt).scalar_one_or_none()
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("%s failed: %s", action, exc)
        raise AppError(
            ErrorCode.DATABASE_ERROR,
            f"{action} failed.",
            500,
        ) from exc


@contextmanager
def transaction(session: Session, action: str) -> Iterator[Session]:
    """
    Runs the block as one unit of work: commit on success, rollback on error.

    AppError propagates unchanged, SQLAlchemyError is wrapped by
    database_errors() and any other exception is wrapped into
    INTERNAL_ERROR (500).
    """
    try:
        with database_errors(action):
            yield session
            session.commit()
    except AppError:
        session.rollback()
        raise
    except Exception as exc:
        session.rollback()
        logger.exception("%s failed unexpectedly", action)
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"{action} failed.",
            500,
        ) from exc


def load(schema: Schema, data: Any, prefix: str | None = None) -> Any:
    """Validates `data` with `schema`, raising AppError (400) on bad input."""
    try:
        return schema.load(data)
    except ValidationError as err:
        raise from_validation_error(err, prefix) from err


def isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None
