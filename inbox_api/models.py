"""
SQLAlchemy ORM models for users and inbox messages.

Also holds the helpers that copy a user's display attributes onto
message records, since every message row carries a denormalized
snapshot of its author.
For Pydantic request/response schemas, see schemas.py.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, JSON, String, Text

from inbox_api.storage import Base


def utc_timestamp() -> str:
    """Current server time as ISO-8601 UTC with microseconds."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class User(Base):
    """
    Inbox participant.

    Table: users
    Only the fields the inbox reads are mapped; nested profile data
    (preferences, items, stats) lives in JSON columns.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    username = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=True)
    preferences = Column(JSON, nullable=False, default=dict)
    inbox_new_messages = Column(Integer, nullable=False, default=0)
    contributor = Column(JSON, nullable=False, default=dict)
    backer = Column(JSON, nullable=False, default=dict)
    items = Column(JSON, nullable=False, default=dict)
    stats = Column(JSON, nullable=False, default=dict)
    push_devices = Column(JSON, nullable=False, default=list)

    def preference(self, *path, default=None):
        """Walk the preferences document, returning default on any gap."""
        node = self.preferences or {}
        for key in path:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node


class InboxMessage(Base):
    """
    One owner's copy of a private message.

    Table: inbox_messages
    Every message is stored twice, once per participant, with owner_id
    and sent flipped. uuid is the peer's user id from the owner's side.
    """
    __tablename__ = "inbox_messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, nullable=False, index=True)
    uuid = Column(String, nullable=False, index=True)
    user = Column(String, nullable=True)
    username = Column(String, nullable=True)
    text = Column(Text, nullable=True)
    timestamp = Column(String, nullable=False, index=True)  # ISO-8601 UTC string
    sent = Column(Boolean, nullable=False, default=False)
    user_styles = Column(JSON, nullable=True)
    contributor = Column(JSON, nullable=True)
    backer = Column(JSON, nullable=True)

    def to_json(self) -> dict:
        """Plain record using the external field names."""
        return {
            "_id": self.id,
            "ownerId": self.owner_id,
            "uuid": self.uuid,
            "user": self.user,
            "username": self.username,
            "text": self.text,
            "timestamp": self.timestamp,
            "sent": bool(self.sent),
            "userStyles": self.user_styles,
            "contributor": self.contributor,
            "backer": self.backer,
        }


# =============================================================================
# Denormalization Helpers
# =============================================================================

BUFF_KEYS = ("seafoam", "shinySeed", "spookySparkles", "snowball")
STYLE_PREFERENCES = ("hair", "skin", "shirt", "chair", "size", "background", "sleep")


def message_defaults(text, user) -> dict:
    """Fields of a new message row that describe the peer `user`."""
    return {
        "id": str(uuid.uuid4()),
        "text": text,
        "timestamp": utc_timestamp(),
        "uuid": user.id,
        "user": user.name,
        "username": user.username,
        "contributor": user.contributor,
        "backer": user.backer,
    }


def set_user_styles(target, user):
    """
    Copy the appearance of `user` onto `target`.

    `target` is either a dict (stored under "userStyles") or an
    InboxMessage (stored in its user_styles column).
    """
    preferences = user.preferences or {}
    items = user.items or {}
    stats = user.stats or {}

    styles = {"items": {"gear": {}}, "preferences": {}, "stats": {}}

    gear = items.get("gear") or {}
    if preferences.get("costume"):
        styles["items"]["gear"]["costume"] = dict(gear.get("costume") or {})
    else:
        styles["items"]["gear"]["equipped"] = dict(gear.get("equipped") or {})

    if "currentMount" in items:
        styles["items"]["currentMount"] = items["currentMount"]
    if "currentPet" in items:
        styles["items"]["currentPet"] = items["currentPet"]

    for key in STYLE_PREFERENCES:
        if key in preferences:
            styles["preferences"][key] = preferences[key]
    styles["preferences"]["costume"] = bool(preferences.get("costume"))

    if "class" in stats:
        styles["stats"]["class"] = stats["class"]
    buffs = stats.get("buffs")
    if buffs:
        styles["stats"]["buffs"] = {key: buffs.get(key, False) for key in BUFF_KEYS}

    if isinstance(target, dict):
        target["userStyles"] = styles
    else:
        target.user_styles = styles
    return target


def map_inbox_message(msg: dict, user) -> dict:
    """
    Rewrite a sent record so it reads from the viewer's side.

    The peer fields move to the toUser* keys and the author fields are
    replaced with the viewing user's own. Received records are left alone.
    """
    if msg.get("sent"):
        msg["toUUID"] = msg.get("uuid")
        msg["toUser"] = msg.get("user")
        msg["toUserName"] = msg.get("username")
        msg["toUserContributor"] = msg.get("contributor")
        msg["toUserBacker"] = msg.get("backer")
        msg["uuid"] = user.id
        msg["user"] = user.name
        msg["username"] = user.username
        msg["contributor"] = user.contributor
        msg["backer"] = user.backer
    return msg
