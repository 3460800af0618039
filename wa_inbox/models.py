"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For the validated record type, see records.py; for API schemas, schemas.py.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Index, String, Text

from wa_inbox.storage import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(Base):
    """
    SQLAlchemy model for the unified message log.

    Table: processed_messages
    Primary Key: message_id (the dedup key, makes inserts idempotent)
    """
    __tablename__ = "processed_messages"

    message_id = Column(String, primary_key=True, index=True)
    conversation_id = Column(String, nullable=False, index=True)
    text = Column(Text, nullable=False, default="")
    message_type = Column(String, nullable=False, default="text")
    from_number = Column(String, nullable=False, index=True)
    to_number = Column(String, nullable=False, index=True)
    contact_name = Column(String, nullable=False, default="Unknown")
    timestamp = Column(BigInteger, nullable=False, index=True)  # ms since epoch
    is_outgoing = Column(Boolean, nullable=False, default=False, index=True)
    status = Column(String, nullable=False, default="received")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_processed_messages_conversation_ts", "conversation_id", "timestamp"),
        Index("ix_processed_messages_from_ts", "from_number", "timestamp"),
        Index("ix_processed_messages_to_ts", "to_number", "timestamp"),
        Index("ix_processed_messages_outgoing_ts", "is_outgoing", "timestamp"),
    )
