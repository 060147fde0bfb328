"""
Private message inbox operations.

Each message is stored once per participant (see storage.send_private_message),
so every read here is a single-table query scoped by owner_id.
"""

import logging
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from inbox_api.models import InboxMessage, map_inbox_message, set_user_styles
from inbox_api.notifications import get_user_info, send_push_notification, send_txn_email
from inbox_api.storage import get_users_by_ids, send_private_message
from inbox_api.metrics import record_message_outcome

logger = logging.getLogger(__name__)

PM_PER_PAGE = 10

DEFAULT_INBOX_OPTIONS = {"asArray": True, "page": 0, "conversation": None, "mapProps": False}


def sent_message(db: Session, sender, receiver, message: str, translate: Callable):
    """
    Send a private message and notify the receiver.

    Both inbox copies are committed before any notification goes out.
    Email and push are each gated by the receiver's newPM preference,
    which counts as enabled unless explicitly False.

    Returns:
        The sender's stored copy (the receiver's when messaging oneself)
    """
    message_sent = send_private_message(db, sender, receiver, receiver_msg=message)
    record_message_outcome("sent")

    sender_name = get_user_info(sender, ["name"])["name"]

    if receiver.preference("emailNotifications", "newPM") is not False:
        send_txn_email(receiver, "new-pm", [
            {"name": "SENDER", "content": sender_name},
        ])

    if receiver.preference("pushNotifications", "newPM") is not False:
        send_push_notification(
            receiver,
            {
                "title": translate(
                    "newPMNotificationTitle",
                    {"name": sender_name},
                    receiver.preference("language"),
                ),
                "message": message,
                "identifier": "newPM",
                "category": "newPM",
                "payload": {"replyTo": sender.id, "senderName": sender_name, "message": message},
            },
        )

    return message_sent


def get_user_inbox(db: Session, user, options: Optional[dict] = None):
    """
    Read a user's inbox, newest first.

    Options:
        asArray: list (default) or dict keyed by message id
        page: page number of PM_PER_PAGE messages; leave the key out to get everything
        conversation: restrict to one conversation uuid
        mapProps: rewrite sent messages from the viewer's side
    """
    if options is None:
        options = dict(DEFAULT_INBOX_OPTIONS)

    as_array = options.get("asArray", True)
    map_props = options.get("mapProps", False)

    query = db.query(InboxMessage).filter(InboxMessage.owner_id == user.id)

    if options.get("conversation"):
        query = query.filter(InboxMessage.uuid == options["conversation"])

    query = query.order_by(InboxMessage.timestamp.desc(), InboxMessage.id.desc())

    if options.get("page") is not None:
        page = int(options["page"])
        query = query.limit(PM_PER_PAGE).offset(PM_PER_PAGE * page)

    messages = []
    for row in query.all():
        msg = row.to_json()
        if map_props:
            map_inbox_message(msg, user)
        messages.append(msg)

    logger.debug(f"Inbox read: user={user.id}, returned={len(messages)}")

    if as_array:
        return messages
    return {msg["_id"]: msg for msg in messages}


def _latest_per_conversation(db: Session, columns, *criteria):
    """
    Subquery with the newest row per conversation uuid among rows
    matching `criteria`, selecting `columns` plus a per-uuid count.
    """
    ranked = (
        db.query(
            InboxMessage.uuid.label("uuid"),
            *columns,
            func.count().over(partition_by=InboxMessage.uuid).label("message_count"),
            func.row_number().over(
                partition_by=InboxMessage.uuid,
                order_by=(InboxMessage.timestamp.desc(), InboxMessage.id.desc()),
            ).label("position"),
        )
        .filter(*criteria)
        .subquery()
    )
    return ranked


def _users_map_by_conversations(db: Session, owner, conversation_ids: list) -> dict:
    """
    Peer display attributes for each conversation.

    Taken from the newest message the peer sent the owner. Conversations
    where the peer never replied have no such message, so the peer's
    user record is loaded and shaped the same way.
    """
    if not conversation_ids:
        return {}

    ranked = _latest_per_conversation(
        db,
        (
            InboxMessage.user_styles.label("user_styles"),
            InboxMessage.contributor.label("contributor"),
            InboxMessage.backer.label("backer"),
        ),
        InboxMessage.owner_id == owner.id,
        InboxMessage.uuid.in_(conversation_ids),
        InboxMessage.sent.is_(False),
    )
    rows = db.query(ranked).filter(ranked.c.position == 1).all()

    users_map = {
        row.uuid: {
            "_id": row.uuid,
            "userStyles": row.user_styles,
            "contributor": row.contributor,
            "backer": row.backer,
        }
        for row in rows
    }

    still_needed = [uuid for uuid in conversation_ids if uuid not in users_map]
    if still_needed:
        logger.debug(f"Loading {len(still_needed)} conversation peers without replies")
        for usr in get_users_by_ids(db, still_needed):
            loaded = {
                "_id": usr.id,
                "backer": usr.backer,
                "contributor": usr.contributor,
            }
            set_user_styles(loaded, usr)
            users_map[usr.id] = loaded

    return users_map


def list_conversations(db: Session, owner) -> list:
    """
    One entry per conversation in the owner's inbox, most recent first.

    Each entry carries the latest message's peer name, text and timestamp,
    the number of messages, and the peer's styles when known.
    """
    ranked = _latest_per_conversation(
        db,
        (
            InboxMessage.user.label("user"),
            InboxMessage.username.label("username"),
            InboxMessage.timestamp.label("timestamp"),
            InboxMessage.text.label("text"),
        ),
        InboxMessage.owner_id == owner.id,
    )
    groups = (
        db.query(ranked)
        .filter(ranked.c.position == 1)
        .order_by(ranked.c.timestamp.desc())
        .all()
    )

    users_map = _users_map_by_conversations(db, owner, [row.uuid for row in groups])

    conversations = []
    for row in groups:
        conversation = {
            "uuid": row.uuid,
            "_id": row.uuid,
            "user": row.user,
            "username": row.username,
            "timestamp": row.timestamp,
            "text": row.text,
            "count": row.message_count,
        }
        peer = users_map.get(row.uuid)
        if peer:
            conversation["userStyles"] = peer.get("userStyles")
            conversation["contributor"] = peer.get("contributor")
            conversation["backer"] = peer.get("backer")
        conversations.append(conversation)

    logger.debug(f"Conversations listed: owner={owner.id}, count={len(conversations)}")
    return conversations


def get_user_inbox_message(db: Session, user, message_id: str):
    """Return the user's copy of a message, or None."""
    return (
        db.query(InboxMessage)
        .filter(InboxMessage.owner_id == user.id, InboxMessage.id == message_id)
        .first()
    )


def delete_message(db: Session, user, message_id: str) -> bool:
    """
    Delete one message from the user's inbox.

    Returns:
        True if deleted, False if the user owns no such message
    """
    message = get_user_inbox_message(db, user, message_id)
    if not message:
        record_message_outcome("not_found")
        return False

    db.query(InboxMessage).filter(
        InboxMessage.id == message.id,
        InboxMessage.owner_id == user.id,
    ).delete(synchronize_session=False)
    db.commit()

    logger.info(f"Message deleted: user={user.id}, id={message_id}")
    record_message_outcome("deleted")
    return True


def clear_pms(db: Session, user) -> None:
    """Reset the unread counter and delete every message the user owns."""
    user.inbox_new_messages = 0
    deleted = (
        db.query(InboxMessage)
        .filter(InboxMessage.owner_id == user.id)
        .delete(synchronize_session=False)
    )
    db.commit()

    logger.info(f"Inbox cleared: user={user.id}, deleted={deleted}")
    record_message_outcome("cleared")
