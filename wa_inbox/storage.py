import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, Iterator, List

from sqlalchemy import create_engine, func, insert, inspect, or_, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from wa_inbox.config import settings
from wa_inbox.errors import StorageError
from wa_inbox.records import MessageRecord

logger = logging.getLogger(__name__)


def _connect_args(database_url: str, timeout: float) -> dict:
    # check_same_thread=False is required for SQLite to work with FastAPI's threadpool;
    # timeout bounds how long a call waits on a locked database
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout}
    return {"connect_timeout": int(timeout)}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL, settings.DB_TIMEOUT_SECONDS),
    pool_pre_ping=True,
    echo=False,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application and batch processor startup.

    Raises:
        StorageError: if the database cannot be reached
    """
    logger.debug(f"Initializing database with URL: {engine.url.render_as_string(hide_password=True)}")
    try:
        # Import models to register them with Base.metadata
        from wa_inbox.models import Message  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")
        raise StorageError("Database initialization failed") from e


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
    Check if the database is reachable and the message table exists.
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        if not inspect(engine).has_table("processed_messages"):
            logger.error("Database schema not applied: 'processed_messages' table not found")
            return False
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False


@contextmanager
def _storage_errors(db: Session, operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into StorageError, rolling back the session."""
    try:
        yield
    except OperationalError as e:
        db.rollback()
        logger.error(f"Store unavailable during {operation}: {e}")
        raise StorageError(f"Storage unavailable during {operation}", retryable=True) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store rejected {operation}: {e}")
        raise StorageError(f"Storage failure during {operation}") from e


# =============================================================================
# Message Repository Functions
# =============================================================================

def insert_message_if_absent(db: Session, record: MessageRecord) -> bool:
    """
    Insert a message unless one with the same message_id exists.

    The primary key constraint makes this an atomic insert-if-absent: of two
    concurrent inserts of the same id exactly one commits.

    Returns:
        True if the row was created, False if it was a duplicate
    """
    from wa_inbox.models import Message

    with _storage_errors(db, "insert"):
        try:
            db.execute(insert(Message).values(**record.model_dump(by_alias=False)))
            db.commit()
        except IntegrityError:
            # message_id already exists - expected for idempotency
            db.rollback()
            logger.debug(f"Duplicate message detected: {record.message_id}")
            return False
    logger.debug(f"Message stored: {record.message_id}")
    return True


def get_message_by_id(db: Session, message_id: str):
    """Return the stored message with this id, or None."""
    from wa_inbox.models import Message

    with _storage_errors(db, "lookup"):
        return db.query(Message).filter(Message.message_id == message_id).first()


def update_message_status(db: Session, message_id: str, status: str) -> bool:
    """
    Set the delivery status of an existing message.

    Returns:
        True if a message matched, False if no message has this id
    """
    from wa_inbox.models import Message

    with _storage_errors(db, "status update"):
        matched = (
            db.query(Message)
            .filter(Message.message_id == message_id)
            .update(
                {Message.status: status, Message.updated_at: datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        db.commit()
    return matched > 0


def get_inbound_conversation_ids(db: Session) -> List[str]:
    """Distinct conversation ids that have at least one incoming message."""
    from wa_inbox.models import Message

    with _storage_errors(db, "conversation discovery"):
        rows = (
            db.query(Message.conversation_id)
            .filter(Message.is_outgoing.is_(False))
            .distinct()
            .all()
        )
    return [row.conversation_id for row in rows]


def _thread_filter(conversation_id: str):
    from wa_inbox.models import Message

    return or_(Message.conversation_id == conversation_id, Message.to_number == conversation_id)


def get_latest_thread_message(db: Session, conversation_id: str):
    """Most recent message of a thread, matched by conversation_id or to_number."""
    from wa_inbox.models import Message

    with _storage_errors(db, "latest message lookup"):
        return (
            db.query(Message)
            .filter(_thread_filter(conversation_id))
            .order_by(Message.timestamp.desc(), Message.message_id.desc())
            .first()
        )


def get_latest_inbound_message(db: Session, conversation_id: str):
    """Most recent incoming message for a conversation; source of contact details."""
    from wa_inbox.models import Message

    with _storage_errors(db, "contact lookup"):
        return (
            db.query(Message)
            .filter(Message.conversation_id == conversation_id, Message.is_outgoing.is_(False))
            .order_by(Message.timestamp.desc(), Message.message_id.desc())
            .first()
        )


def get_thread_messages(db: Session, conversation_id: str) -> list:
    """
    All messages of a thread, oldest first.

    Ordering: timestamp ASC, message_id ASC (deterministic)
    """
    from wa_inbox.models import Message

    with _storage_errors(db, "message listing"):
        return (
            db.query(Message)
            .filter(_thread_filter(conversation_id))
            .order_by(Message.timestamp.asc(), Message.message_id.asc())
            .all()
        )


def count_messages(db: Session) -> int:
    from wa_inbox.models import Message

    with _storage_errors(db, "message count"):
        return db.query(func.count(Message.message_id)).scalar() or 0


def count_conversations(db: Session) -> int:
    """Number of distinct conversations discovered from inbound traffic."""
    from wa_inbox.models import Message

    with _storage_errors(db, "conversation count"):
        return (
            db.query(func.count(func.distinct(Message.conversation_id)))
            .filter(Message.is_outgoing.is_(False))
            .scalar()
            or 0
        )
