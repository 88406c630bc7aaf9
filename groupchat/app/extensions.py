"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy as a module-level object so it can be imported
anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` from here wherever needed.

    from groupchat.app.extensions import db

Validation schemas (app/schemas/) inherit from marshmallow.Schema directly.
They never need an application context, so unit tests can load them
without a Flask app.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
