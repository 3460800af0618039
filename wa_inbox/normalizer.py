"""
Webhook payload normalization.

Extracts the message and status entries from one raw webhook document of
the shape

    {"metaData": {"entry": [{"changes": [{"value": {...}}]}]}}

Every step of the path is an explicit "get or short-circuit" so a document
missing any level yields no batch instead of an exception.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from wa_inbox.errors import MalformedPayloadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Contact:
    """A contact attached to a webhook batch."""
    wa_id: str
    name: Optional[str] = None


@dataclass
class WebhookBatch:
    """Normalized content of one webhook document."""
    business_number: str
    value: dict
    contacts: List[Contact] = field(default_factory=list)
    message_entries: List[dict] = field(default_factory=list)
    status_entries: List[dict] = field(default_factory=list)


def _field(node: Any, name: str) -> Optional[Any]:
    """Return node[name] if node is a mapping holding it, else None."""
    if not isinstance(node, dict):
        return None
    return node.get(name)


def _first(node: Any) -> Optional[Any]:
    """Return the first element of a non-empty list, else None."""
    if not isinstance(node, list) or not node:
        return None
    return node[0]


def _entries(value: dict, name: str) -> List[dict]:
    items = value.get(name)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _contacts(value: dict) -> List[Contact]:
    contacts = []
    for item in _entries(value, "contacts"):
        wa_id = item.get("wa_id")
        if not wa_id:
            continue
        name = _field(item.get("profile"), "name")
        contacts.append(Contact(wa_id=str(wa_id), name=name if isinstance(name, str) and name else None))
    return contacts


def normalize_document(document: Any, default_business_number: str = "") -> Optional[WebhookBatch]:
    """
    Extract a WebhookBatch from a raw webhook document.

    Args:
        document: Parsed JSON document
        default_business_number: Used when the document has no
            metadata.display_phone_number

    Returns:
        WebhookBatch, or None if the entry/changes/value path is missing
    """
    entry = _first(_field(_field(document, "metaData"), "entry"))
    if entry is None:
        return None
    change = _first(_field(entry, "changes"))
    value = _field(change, "value")
    if not isinstance(value, dict):
        return None

    display_number = _field(value.get("metadata"), "display_phone_number")
    business_number = str(display_number) if display_number else (default_business_number or "")
    if not business_number:
        logger.warning("No business number available; all messages will be treated as incoming")

    return WebhookBatch(
        business_number=business_number,
        value=value,
        contacts=_contacts(value),
        message_entries=_entries(value, "messages"),
        status_entries=_entries(value, "statuses"),
    )


def parse_document(raw: bytes, source: str = None) -> Any:
    """
    Parse raw webhook bytes as JSON.

    Raises:
        MalformedPayloadError: if the bytes are not valid UTF-8 JSON
    """
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPayloadError(f"Invalid JSON: {e}", source=source) from e


def load_document(path: Path) -> Any:
    """
    Read and parse one webhook JSON file.

    Raises:
        MalformedPayloadError: if the file cannot be read or parsed
    """
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise MalformedPayloadError(f"Cannot read file: {e}", source=Path(path).name) from e
    return parse_document(raw, source=Path(path).name)
