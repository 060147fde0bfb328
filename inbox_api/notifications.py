"""
Email and push notification dispatch for inbox events.

Delivery itself belongs to external gateways; this module decides
whether a notification goes out, shapes it, and records the dispatch
in the logs and metrics.
"""

import logging
from typing import Iterable, List, Mapping

from inbox_api.metrics import record_notification

logger = logging.getLogger(__name__)

# Transactional email types and the preference flag that gates each one
EMAIL_PREFERENCE_KEYS = {
    "new-pm": "newPM",
}


def get_user_info(user, fields: Iterable[str]) -> dict:
    """
    Extract public contact details from a user.

    Args:
        user: User to describe
        fields: Any of "name", "email", "_id"

    Returns:
        Dict holding only the requested fields
    """
    info = {}
    for field in fields:
        if field == "name":
            info["name"] = user.name or user.username
        elif field == "email":
            info["email"] = user.email
        elif field == "_id":
            info["_id"] = user.id
    return info


def send_txn_email(user, email_type: str, variables: List[Mapping] = None) -> bool:
    """
    Send a transactional email to a user.

    Skipped when the user has no address, unsubscribed from all email,
    or turned off this email type.

    Args:
        user: Recipient
        email_type: Template key such as "new-pm"
        variables: Template substitutions as [{"name": ..., "content": ...}]

    Returns:
        True if the email was dispatched, False if skipped
    """
    email_prefs = user.preference("emailNotifications", default={}) or {}
    preference_key = EMAIL_PREFERENCE_KEYS.get(email_type)

    if not user.email:
        reason = "no_address"
    elif email_prefs.get("unsubscribeFromAll") is True:
        reason = "unsubscribed"
    elif preference_key and email_prefs.get(preference_key) is False:
        reason = "disabled"
    else:
        reason = None

    if reason:
        logger.debug(f"Email skipped: user={user.id}, type={email_type}, reason={reason}")
        record_notification("email", "skipped")
        return False

    substitutions = {var["name"]: var["content"] for var in (variables or [])}
    logger.info(
        "Transactional email dispatched",
        extra={
            "user_id": user.id,
            "email_type": email_type,
            "substitutions": substitutions,
        },
    )
    record_notification("email", "sent")
    return True


def send_push_notification(user, details: Mapping) -> bool:
    """
    Send a push notification to every registered device of a user.

    Args:
        user: Recipient
        details: Dict with title, message, identifier, category and payload

    Returns:
        True if at least one device was notified, False if skipped

    Raises:
        ValueError: If details has no identifier
    """
    if not details or not details.get("identifier"):
        raise ValueError("Push notification identifier is required")

    devices = user.push_devices or []
    if user.preference("pushNotifications", "unsubscribeFromAll") is True or not devices:
        logger.debug(f"Push skipped: user={user.id}, identifier={details['identifier']}")
        record_notification("push", "skipped")
        return False

    for device in devices:
        logger.info(
            "Push notification dispatched",
            extra={
                "user_id": user.id,
                "device_type": device.get("type"),
                "identifier": details["identifier"],
                "category": details.get("category"),
                "title": details.get("title"),
            },
        )
    record_notification("push", "sent")
    return True
