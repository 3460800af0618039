"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data validation
- Response models for API responses

Response bodies use camelCase keys and always carry `success`.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from wa_inbox.conversations import ConversationSummary
from wa_inbox.records import MessageRecord


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Pydantic Request Models
# =============================================================================

class SendMessageRequest(_ApiModel):
    """
    Body of POST /api/conversations/{conversation_id}/messages.

    Blank text is rejected by the composer, not here, so the error body
    matches every other validation failure.
    """
    text: Optional[str] = Field(None, description="Message text")
    contact_name: Optional[str] = Field(None, description="Display name to log the send against")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"examples": [{"text": "Hello", "contactName": "Alice"}]},
    )


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ErrorResponse(_ApiModel):
    success: bool = Field(default=False)
    error: str = Field(..., description="Human readable reason")


class ConversationsListResponse(_ApiModel):
    success: bool = Field(default=True)
    conversations: list[ConversationSummary] = Field(default_factory=list)


class MessagesListResponse(_ApiModel):
    """Messages of one conversation, oldest first."""
    success: bool = Field(default=True)
    messages: list[MessageRecord] = Field(default_factory=list)


class SendMessageResponse(_ApiModel):
    success: bool = Field(default=True)
    message: MessageRecord


class HealthResponse(_ApiModel):
    """Response model for GET /api/health."""
    success: bool = Field(default=True)
    status: str = Field(..., description="OK, or the failing component")
    total_messages: Optional[int] = Field(None, ge=0)
    total_conversations: Optional[int] = Field(None, ge=0)
    timestamp: str = Field(..., description="Server time, ISO-8601 UTC")
    uptime: Optional[float] = Field(None, ge=0, description="Seconds since the service started")
    error: Optional[str] = Field(None, description="Reason if unhealthy")


class WebhookResponse(_ApiModel):
    """Outcome counts for one ingested webhook document."""
    success: bool = Field(default=True)
    created: int = Field(default=0, ge=0)
    duplicates: int = Field(default=0, ge=0)
    invalid: int = Field(default=0, ge=0)
    statuses_updated: int = Field(default=0, ge=0)
    statuses_unmatched: int = Field(default=0, ge=0)
    skipped: bool = Field(default=False, description="True if the document had no webhook structure")
