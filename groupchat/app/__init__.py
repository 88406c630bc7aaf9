"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to import the metadata without starting anything

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Initialise the SQLAlchemy extension via init_app()
  3. Import all models so SQLAlchemy's metadata is complete
  4. Configure logging for the app and the groupchat package

get_chat_group_repo() hands out a ChatGroupRepo bound to the request /
app-context session; it must be called inside an application context.
"""

from __future__ import annotations

import logging

from flask import Flask, current_app

from groupchat.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from groupchat.app.extensions import db
    db.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # The imports are intentionally unused by name; only the side effect matters.
    with app.app_context():
        from groupchat.app.models import (  # noqa: F401
            chat_group,
            chat_group_member,
            chat_group_message,
        )

    app.logger.debug(
        "groupchat app created (config=%s, database=%s)",
        config_name,
        app.config.get("SQLALCHEMY_DATABASE_URI", "").split("@")[-1],
    )
    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to the Flask app logger and the `groupchat` logger
    hierarchy (repositories log under groupchat.app.repos.*).

    A stream handler is attached to `groupchat` only once, so creating
    several apps in one process (tests) does not duplicate log lines.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    app.logger.setLevel(level)

    package_logger = logging.getLogger("groupchat")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))
        package_logger.addHandler(handler)


def get_chat_group_repo():
    """
    Returns a ChatGroupRepo bound to db.session and CHAT_LIST_DEFAULT_LIMIT.

    Usage (inside an app context):
        repo = get_chat_group_repo()
        group_id = repo.create_group(user_id, "Weekend plans", members)
    """
    from groupchat.app.extensions import db
    from groupchat.app.repos.chat_group_repo import ChatGroupRepo

    return ChatGroupRepo(
        db.session,
        default_limit=current_app.config.get("CHAT_LIST_DEFAULT_LIMIT", 20),
    )
