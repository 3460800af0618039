"""
Conversation aggregation over the flat message log.

Summaries are recomputed on every query; nothing here writes to the store.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from wa_inbox import storage
from wa_inbox.records import UNKNOWN_CONTACT, MessageRecord


NO_MESSAGE_TEXT = "No message"


class ConversationSummary(BaseModel):
    """One row of the conversation list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    conversation_id: str = Field(..., description="Contact identity of the thread")
    contact_name: str = Field(default=UNKNOWN_CONTACT)
    phone_number: str = Field(..., description="Contact address as seen on incoming messages")
    last_message: str = Field(..., description="Text of the most recent message")
    last_message_time: int = Field(..., description="Timestamp (ms) of the most recent message")
    is_last_outgoing: bool = Field(..., description="Whether the most recent message was sent by the business")


class ConversationAggregator:
    """
    Answers "which conversations exist" and "what is in this one".

    Args:
        db: Database session
        logger: Logger for query diagnostics
    """

    def __init__(self, db: Session, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def summarize(self, conversation_id: str) -> Optional[ConversationSummary]:
        """Build the summary of one conversation, None if it has no messages."""
        last = storage.get_latest_thread_message(self.db, conversation_id)
        if last is None:
            return None
        contact = storage.get_latest_inbound_message(self.db, conversation_id)

        return ConversationSummary(
            conversation_id=conversation_id,
            contact_name=(contact.contact_name if contact else None) or UNKNOWN_CONTACT,
            phone_number=(contact.from_number if contact else None) or conversation_id,
            last_message=last.text or NO_MESSAGE_TEXT,
            last_message_time=last.timestamp,
            is_last_outgoing=last.is_outgoing,
        )

    def list_conversations(self) -> List[ConversationSummary]:
        """
        Summaries of every conversation discovered from incoming traffic.

        Contacts that only ever received outgoing messages are not listed.
        Ordering: last_message_time DESC, then conversation_id ASC.
        """
        conversation_ids = storage.get_inbound_conversation_ids(self.db)
        summaries = []
        for conversation_id in conversation_ids:
            summary = self.summarize(conversation_id)
            if summary is not None:
                summaries.append(summary)

        summaries.sort(key=lambda s: s.conversation_id)
        summaries.sort(key=lambda s: s.last_message_time, reverse=True)
        self.logger.debug(f"Listed {len(summaries)} conversations")
        return summaries

    def list_messages(self, conversation_id: str) -> List[MessageRecord]:
        """
        Every message of a conversation, oldest first.

        An unknown conversation id yields an empty list.
        """
        rows = storage.get_thread_messages(self.db, conversation_id)
        self.logger.debug(f"Conversation {conversation_id}: {len(rows)} messages")
        return [MessageRecord.model_validate(row) for row in rows]

    def stats(self) -> dict:
        return {
            "total_messages": storage.count_messages(self.db),
            "total_conversations": storage.count_conversations(self.db),
        }
