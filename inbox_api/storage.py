import logging
from typing import Generator, Iterable, List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base, load_only

from inbox_api.config import settings

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()

REQUIRED_TABLES = ("users", "inbox_messages")


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from inbox_api.models import User, InboxMessage  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and all tables exist, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        inspector = inspect(engine)
        for table in REQUIRED_TABLES:
            if not inspector.has_table(table):
                logger.error(f"Database schema not applied: '{table}' table not found")
                return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# User Repository Functions
# =============================================================================

def create_user(db: Session, name: str, username: str, **fields):
    """
    Create and persist a user.

    Args:
        db: Database session
        name: Profile display name
        username: Unique login name
        **fields: Any other User column (email, preferences, items, ...)

    Returns:
        The committed User
    """
    from inbox_api.models import User

    user = User(name=name, username=username, **fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User created: id={user.id}, username={username}")
    return user


def get_user_by_id(db: Session, user_id: str):
    """Return the User with this id, or None."""
    from inbox_api.models import User

    return db.query(User).filter(User.id == user_id).first()


def get_users_by_ids(db: Session, user_ids: Iterable[str]) -> List:
    """
    Load users by id, restricted to the fields needed for conversation
    display (contributor, backer, items, preferences, stats).
    """
    from inbox_api.models import User

    ids = list(user_ids)
    if not ids:
        return []

    return (
        db.query(User)
        .options(load_only(
            User.id,
            User.contributor,
            User.backer,
            User.items,
            User.preferences,
            User.stats,
        ))
        .filter(User.id.in_(ids))
        .all()
    )


# =============================================================================
# Message Repository Functions
# =============================================================================

def send_private_message(
    db: Session,
    sender,
    receiver,
    receiver_msg: str,
    sender_msg: Optional[str] = None,
):
    """
    Persist a private message as one row per participant.

    The receiver's copy describes the sender and bumps the receiver's
    unread counter. The sender's copy describes the receiver and is
    skipped when a user messages themselves. Both copies carry the
    sender's styles and share one timestamp.

    Args:
        db: Database session
        sender: Sending User
        receiver: Receiving User
        receiver_msg: Text shown in the receiver's inbox
        sender_msg: Text shown in the sender's inbox (defaults to receiver_msg)

    Returns:
        The sender's InboxMessage, or the receiver's when sending to oneself
    """
    from inbox_api.models import InboxMessage, message_defaults, set_user_styles

    sender_msg = sender_msg or receiver_msg

    receiver_copy = InboxMessage(owner_id=receiver.id, sent=False, **message_defaults(receiver_msg, sender))
    set_user_styles(receiver_copy, sender)
    db.add(receiver_copy)

    receiver.inbox_new_messages = (receiver.inbox_new_messages or 0) + 1

    sending_to_yourself = receiver.id == sender.id
    sender_copy = None
    if not sending_to_yourself:
        sender_copy = InboxMessage(owner_id=sender.id, sent=True, **message_defaults(sender_msg, receiver))
        sender_copy.timestamp = receiver_copy.timestamp
        set_user_styles(sender_copy, sender)
        db.add(sender_copy)

    db.commit()
    logger.info(f"Private message stored: from={sender.id}, to={receiver.id}, id={receiver_copy.id}")

    result = receiver_copy if sending_to_yourself else sender_copy
    db.refresh(result)
    return result
