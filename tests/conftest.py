"""
Pytest configuration and shared fixtures.

Test settings are put in the environment before any app import so the
engine binds to a throwaway SQLite file.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_inbox.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

# Clear settings cache before any app imports to ensure test env vars are used
from inbox_api.config import get_settings
get_settings.cache_clear()

from inbox_api.storage import SessionLocal, Base, engine, create_user
from inbox_api.models import InboxMessage, User  # noqa: F401


@pytest.fixture(scope="function")
def db():
    """Session on a freshly created schema, dropped after the test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    """Factory creating committed users with sensible defaults."""
    counter = {"n": 0}

    def _make_user(name=None, **fields):
        counter["n"] += 1
        username = fields.pop("username", f"user{counter['n']}")
        return create_user(db, name=name or username.title(), username=username, **fields)

    return _make_user


@pytest.fixture
def add_message(db):
    """
    Insert one inbox row directly, with an explicit timestamp.

    add_message(owner, peer, text, ts, sent=False) stores owner's copy of a
    message exchanged with peer.
    """
    def _add_message(owner, peer, text, ts, sent=False, **fields):
        row = InboxMessage(
            owner_id=owner.id,
            uuid=peer.id,
            user=peer.name,
            username=peer.username,
            text=text,
            timestamp=ts,
            sent=sent,
            **fields,
        )
        db.add(row)
        db.commit()
        return row

    return _add_message
