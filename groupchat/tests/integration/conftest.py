"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run the repository against a real database. TestingConfig uses
    in-memory SQLite unless TEST_DATABASE_URL points at PostgreSQL.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - make_group(repo, ...)    → group id
  - make_message(repo, ...)  → message id
  - member_rows(app, ...)    → every member row of a group, deleted included
  - backdate(model, id)      → pushes a row's updated_at into the past

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import select, text, update

from groupchat.app import create_app, get_chat_group_repo
from groupchat.app.extensions import db as _db
from groupchat.app.models.chat_group_member import ChatGroupMember
from groupchat.app.models.chat_group_message import MessageRole


OWNER_ID = 10
OTHER_USER_ID = 20

# Far enough back that any refreshed timestamp compares later.
BACKDATED = datetime(2000, 1, 1)


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire
    test session and creates every table. Tables are dropped at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after EVERY test, children before parents.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM chat_group_messages"))
            conn.execute(text("DELETE FROM chat_group_members"))
            conn.execute(text("DELETE FROM chat_groups"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Repository fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def repo(app):
    """ChatGroupRepo bound to db.session inside a fresh app context."""
    with app.app_context():
        yield get_chat_group_repo()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_group(
    repo,
    name: str = "Weekend plans",
    user_id: int = OWNER_ID,
    members: list[dict] | None = None,
) -> int:
    if members is None:
        members = [
            {"model_id": "gpt-4", "model_name": "GPT-4"},
            {"model_id": "claude-3", "model_name": "Claude"},
        ]
    return repo.create_group(user_id, name, members)


def make_message(
    repo,
    group_id: int,
    text_: str = "hello",
    user_id: int = OWNER_ID,
    **fields,
) -> int:
    msg = {"message": text_, "role": int(MessageRole.USER)}
    msg.update(fields)
    return repo.add_chat_message(group_id, user_id, msg)


def member_rows(group_id: int) -> list[ChatGroupMember]:
    """All member rows of a group in id order, soft-deleted ones included."""
    return list(_db.session.execute(
        select(ChatGroupMember)
        .where(ChatGroupMember.group_id == group_id)
        .order_by(ChatGroupMember.id.asc())
    ).scalars().all())


def backdate(model, row_id: int) -> None:
    """Sets a row's updated_at to BACKDATED, bypassing the column's onupdate."""
    _db.session.execute(
        update(model).where(model.id == row_id).values(updated_at=BACKDATED)
    )
    _db.session.commit()


def parse_timestamp(value: str) -> datetime:
    """ISO string from a repo dict → naive datetime, comparable on any backend."""
    return datetime.fromisoformat(value).replace(tzinfo=None)
