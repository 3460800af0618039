"""
Conversation identity and direction resolution.

conversation_id is always the contact's address: for an incoming message
it is the sender, for a message the business sent it is the recipient.
Nothing here raises; ambiguity degrades to a fallback.
"""

from dataclasses import dataclass
from typing import List, Optional

from wa_inbox.normalizer import Contact
from wa_inbox.records import SELF_CONTACT, UNKNOWN_CONTACT


@dataclass(frozen=True)
class ResolvedIdentity:
    conversation_id: str
    contact_name: str
    to_number: str
    is_outgoing: bool


def match_contact(address: str, contacts: List[Contact]) -> Optional[Contact]:
    """
    Find the contact for an address.

    Exact match on wa_id; otherwise the first contact of the batch.
    None only when the batch has no contacts.
    """
    for contact in contacts:
        if contact.wa_id == address:
            return contact
    return contacts[0] if contacts else None


def resolve_identity(entry: dict, contacts: List[Contact], business_number: str) -> ResolvedIdentity:
    """
    Decide direction, conversation id, contact name and recipient of a message entry.

    Args:
        entry: Raw message entry from the webhook
        contacts: Contacts of the batch, in payload order
        business_number: The business's own address, may be empty
    """
    sender = str(entry.get("from") or "")

    if business_number and sender == business_number:
        # Sent by the business: the contact is the recipient
        if contacts:
            recipient = contacts[0].wa_id
        else:
            recipient = str(entry.get("to") or "")
        return ResolvedIdentity(
            conversation_id=recipient,
            contact_name=SELF_CONTACT,
            to_number=recipient,
            is_outgoing=True,
        )

    contact = match_contact(sender, contacts)
    if contact is None:
        return ResolvedIdentity(
            conversation_id=sender,
            contact_name=UNKNOWN_CONTACT,
            to_number=business_number,
            is_outgoing=False,
        )
    return ResolvedIdentity(
        conversation_id=contact.wa_id,
        contact_name=contact.name or UNKNOWN_CONTACT,
        to_number=business_number,
        is_outgoing=False,
    )
