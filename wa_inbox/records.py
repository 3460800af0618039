"""
Canonical message record.

`MessageRecord` is the validated, storage-independent form of a stored
message. `build_message_record` is the only place records get validated;
everything upstream (normalizer, identity resolver, composer) must hand it
fully resolved fields.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator
from pydantic.alias_generators import to_camel

from wa_inbox.errors import ValidationError


UNKNOWN_CONTACT = "Unknown"
SELF_CONTACT = "You"
# Largest value a signed 64-bit BIGINT column holds
MAX_TIMESTAMP_MS = 2 ** 63 - 1


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"


class MessageStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    RECEIVED = "received"


class MessageRecord(BaseModel):
    """
    A single message in the unified log.

    conversation_id is always the contact's identity, whichever way the
    message travelled. Serialized with camelCase keys (messageId, ...).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
        validate_default=True,
    )

    message_id: str = Field(..., min_length=1, description="Globally unique message id")
    conversation_id: str = Field(..., min_length=1, description="Contact identity of the thread")
    text: str = Field(default="", description="Message body, empty for media")
    message_type: MessageType = Field(default=MessageType.TEXT)
    from_number: str = Field(..., min_length=1, description="Sender address as seen on the wire")
    to_number: str = Field(default="", description="Recipient address as seen on the wire, empty if unknown")
    contact_name: str = Field(default=UNKNOWN_CONTACT)
    timestamp: int = Field(..., gt=0, le=MAX_TIMESTAMP_MS, description="Milliseconds since epoch")
    is_outgoing: bool = Field(default=False)
    status: MessageStatus = Field(default=MessageStatus.RECEIVED)

    @field_validator("message_id", "conversation_id", "from_number")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def reject_bool_timestamp(cls, v: Any) -> Any:
        # bool is an int subclass; True would otherwise validate as 1ms
        if isinstance(v, bool):
            raise ValueError("must be an integer number of milliseconds")
        return v


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error["loc"]) or "record"
        parts.append(f"{field}: {error['msg']}")
    return "; ".join(parts)


def build_message_record(**fields: Any) -> MessageRecord:
    """
    Validate and construct a MessageRecord.

    Status defaults to `sent` for outgoing and `received` for incoming
    messages when not supplied.

    Raises:
        ValidationError: if a required field is missing or out of range
    """
    if fields.get("status") is None:
        fields["status"] = MessageStatus.SENT if fields.get("is_outgoing") else MessageStatus.RECEIVED
    if fields.get("contact_name") is None:
        fields["contact_name"] = UNKNOWN_CONTACT
    for name in ("text", "to_number"):
        if fields.get(name) is None:
            fields[name] = ""
    try:
        return MessageRecord.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid message record: {_describe(e)}") from e
