"""
Outgoing message composition.

Builds the record for a message the business sends from the inbox and
stores it through the same idempotent persist path as webhook ingestion.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from wa_inbox import storage
from wa_inbox.errors import ValidationError
from wa_inbox.ingestion import IngestionEngine, PersistOutcome
from wa_inbox.records import SELF_CONTACT, UNKNOWN_CONTACT, MessageRecord, MessageStatus, build_message_record


_ID_ALPHABET = string.digits + string.ascii_lowercase


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_message_id(now_ms: Optional[int] = None) -> str:
    """
    Time based message id with a random suffix: msg_<ms>_<9 base36 chars>.

    Uniqueness is statistical; the message_id primary key is the real guard.
    """
    if now_ms is None:
        now_ms = _now_ms()
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"msg_{now_ms}_{suffix}"


def compose_outgoing(
    conversation_id: str,
    text: str,
    business_number: str,
    now_ms: Optional[int] = None,
) -> MessageRecord:
    """
    Build the record of a message sent by the business.

    Raises:
        ValidationError: if text is blank or conversation_id is missing
    """
    if not text or not text.strip():
        raise ValidationError("Message text is required")
    if not conversation_id or not conversation_id.strip():
        raise ValidationError("conversationId is required")
    if now_ms is None:
        now_ms = _now_ms()

    return build_message_record(
        message_id=generate_message_id(now_ms),
        conversation_id=conversation_id,
        text=text.strip(),
        message_type="text",
        from_number=business_number,
        to_number=conversation_id,
        contact_name=SELF_CONTACT,
        timestamp=now_ms,
        is_outgoing=True,
        status=MessageStatus.SENT,
    )


@dataclass
class SentMessage:
    record: MessageRecord
    contact_label: str


class MessageComposer:
    """
    Sends (records) messages from the business to a contact.

    Args:
        db: Database session
        business_number: Business address used as the sender
        logger: Logger for send diagnostics
    """

    def __init__(self, db: Session, business_number: str, logger: Optional[logging.Logger] = None):
        self.db = db
        self.business_number = business_number
        self.logger = logger or logging.getLogger(__name__)
        self.engine = IngestionEngine(db, business_number, logger=self.logger)

    def contact_label(self, conversation_id: str, provided: Optional[str] = None) -> str:
        """Caller supplied name, else the name on the latest incoming message."""
        if provided and provided.strip():
            return provided.strip()
        known = storage.get_latest_inbound_message(self.db, conversation_id)
        if known is not None and known.contact_name:
            return known.contact_name
        return UNKNOWN_CONTACT

    def send(self, conversation_id: str, text: str, contact_name: Optional[str] = None) -> SentMessage:
        """
        Compose and persist an outgoing message.

        Raises:
            ValidationError: on blank text, missing conversation id, or id collision
        """
        record = compose_outgoing(conversation_id, text, self.business_number)
        label = self.contact_label(record.conversation_id, contact_name)

        if self.engine.persist(record) is PersistOutcome.DUPLICATE:
            raise ValidationError("Message with this ID already exists")
        self.logger.info(f"Message saved: {record.message_id} to {label} ({record.conversation_id})")
        return SentMessage(record=record, contact_label=label)
