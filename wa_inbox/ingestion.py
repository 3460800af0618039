"""
Webhook ingestion engine.

Runs normalize -> resolve -> validate -> persist for every message entry of
a webhook document, and normalize -> match -> update for every status entry.

Failure scope:
- a malformed document or entry is logged and skipped
- a row the store rejects is logged and skipped like a malformed entry
- a retryable StorageError (store unreachable) is fatal for the run and
  propagates to the caller
"""

import logging
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.orm import Session

from wa_inbox import storage
from wa_inbox.errors import MalformedPayloadError, NotFoundError, StorageError, ValidationError
from wa_inbox.identity import resolve_identity
from wa_inbox.metrics import record_document_outcome, record_message_outcome, record_status_outcome
from wa_inbox.normalizer import WebhookBatch, load_document, normalize_document
from wa_inbox.records import MessageRecord, MessageStatus, build_message_record


class PersistOutcome(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"


@dataclass
class IngestionReport:
    """Counters for one ingestion run."""
    documents: int = 0
    skipped_documents: int = 0
    created: int = 0
    duplicates: int = 0
    invalid: int = 0
    statuses_updated: int = 0
    statuses_unmatched: int = 0
    statuses_invalid: int = 0

    def merge(self, other: "IngestionReport") -> "IngestionReport":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self


def timestamp_to_ms(raw: Any) -> int:
    """
    Convert a webhook timestamp in seconds (number or numeric string) to ms.

    Fractional seconds are truncated, so "1000.9" becomes 1000000.

    Raises:
        ValidationError: if the value is missing or not numeric
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError("timestamp is required")
    if isinstance(raw, int):
        return raw * 1000
    value = str(raw).strip()
    try:
        try:
            seconds = int(value)
        except ValueError:
            seconds = int(float(value))
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"timestamp is not numeric: {raw!r}") from e
    return seconds * 1000


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def message_text(entry: dict) -> str:
    body = entry.get("text")
    if isinstance(body, dict) and isinstance(body.get("body"), str):
        return body["body"]
    return ""


class IngestionEngine:
    """
    Persists webhook content into the message log.

    Args:
        db: Database session used for every store call of the run
        business_number: Default business address for documents without metadata
        logger: Logger to report skips and outcomes on
    """

    def __init__(self, db: Session, business_number: str = "", logger: Optional[logging.Logger] = None):
        self.db = db
        self.business_number = business_number
        self.logger = logger or logging.getLogger(__name__)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def build_record(self, entry: dict, batch: WebhookBatch) -> MessageRecord:
        """
        Turn one raw message entry into a validated MessageRecord.

        Raises:
            ValidationError: if the entry cannot produce a valid record
        """
        identity = resolve_identity(entry, batch.contacts, batch.business_number)
        return build_message_record(
            message_id=_optional_str(entry.get("id")),
            conversation_id=identity.conversation_id,
            text=message_text(entry),
            message_type=entry.get("type") or "text",
            from_number=_optional_str(entry.get("from")),
            to_number=identity.to_number,
            contact_name=identity.contact_name,
            timestamp=timestamp_to_ms(entry.get("timestamp")),
            is_outgoing=identity.is_outgoing,
        )

    def persist(self, record: MessageRecord) -> PersistOutcome:
        """
        Store a record at most once per message_id.

        A second write of the same id is a no-op and reports DUPLICATE.
        """
        if storage.insert_message_if_absent(self.db, record):
            self.logger.info(f"Saved message {record.message_id} from {record.contact_name}")
            return PersistOutcome.CREATED
        self.logger.info(f"Message already exists: {record.message_id}")
        return PersistOutcome.DUPLICATE

    def _ingest_message(self, entry: dict, batch: WebhookBatch, report: IngestionReport, source: str) -> None:
        try:
            record = self.build_record(entry, batch)
        except ValidationError as e:
            self.logger.warning(f"Skipping message entry {entry.get('id')!r} in {source}: {e.message}")
            record_message_outcome("invalid")
            report.invalid += 1
            return

        try:
            outcome = self.persist(record)
        except StorageError as e:
            # Unreachable store aborts the run; a rejected row only skips this entry
            if e.retryable:
                raise
            self.logger.warning(f"Skipping message entry {record.message_id!r} in {source}: {e.message}")
            record_message_outcome("invalid")
            report.invalid += 1
            return

        record_message_outcome(outcome.value)
        if outcome is PersistOutcome.CREATED:
            report.created += 1
        else:
            report.duplicates += 1

    # -------------------------------------------------------------------------
    # Status updates
    # -------------------------------------------------------------------------

    def apply_status(self, entry: dict) -> str:
        """
        Apply one delivery report to the message it refers to.

        Returns:
            The message_id that was updated

        Raises:
            ValidationError: if the entry has no id or an unknown status
            NotFoundError: if no stored message has the id
        """
        message_id = entry.get("id") or entry.get("meta_msg_id")
        if not message_id:
            raise ValidationError("status entry has no id or meta_msg_id")
        try:
            status = MessageStatus(entry.get("status"))
        except ValueError as e:
            raise ValidationError(f"unknown status {entry.get('status')!r}") from e

        if not storage.update_message_status(self.db, str(message_id), status.value):
            raise NotFoundError(f"Message not found for status update: {message_id}")
        self.logger.info(f"Updated status: {message_id} to {status.value}")
        return str(message_id)

    def _apply_status_entry(self, entry: dict, report: IngestionReport, source: str) -> None:
        try:
            self.apply_status(entry)
        except ValidationError as e:
            self.logger.warning(f"Skipping status entry in {source}: {e.message}")
            record_status_outcome("invalid")
            report.statuses_invalid += 1
        except NotFoundError as e:
            self.logger.info(e.message)
            record_status_outcome("unmatched")
            report.statuses_unmatched += 1
        else:
            record_status_outcome("updated")
            report.statuses_updated += 1

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def ingest_document(self, document: Any, source: str = "<request>") -> IngestionReport:
        """
        Ingest one parsed webhook document.

        Entries are processed in payload order. A document without the
        entry/changes/value structure is skipped, not an error.
        """
        report = IngestionReport(documents=1)
        batch = normalize_document(document, self.business_number)
        if batch is None:
            self.logger.warning(f"Invalid webhook structure in: {source}")
            record_document_outcome("skipped")
            report.skipped_documents += 1
            return report

        if batch.message_entries:
            self.logger.info(f"Found {len(batch.message_entries)} message(s) in {source}")
        for entry in batch.message_entries:
            self._ingest_message(entry, batch, report, source)

        if batch.status_entries:
            self.logger.info(f"Found {len(batch.status_entries)} status update(s) in {source}")
        for entry in batch.status_entries:
            self._apply_status_entry(entry, report, source)

        record_document_outcome("processed")
        return report

    def ingest_file(self, path: Path) -> IngestionReport:
        """Ingest one webhook JSON file; unreadable or invalid JSON is skipped."""
        path = Path(path)
        self.logger.info(f"Processing: {path.name}")
        try:
            document = load_document(path)
        except MalformedPayloadError as e:
            self.logger.warning(f"Error processing file {path.name}: {e.message}")
            record_document_outcome("skipped")
            return IngestionReport(documents=1, skipped_documents=1)
        return self.ingest_document(document, source=path.name)

    def ingest_directory(self, directory: Path) -> IngestionReport:
        """
        Ingest every *.json file of a directory, in file name order.

        Raises:
            FileNotFoundError: if the directory does not exist
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise FileNotFoundError(f"Webhook folder not found: {directory}")

        report = IngestionReport()
        files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == ".json")
        if not files:
            self.logger.warning(f"No JSON files found in {directory}")
        for path in files:
            report.merge(self.ingest_file(path))
        self.logger.info(
            f"Processed {report.documents} file(s): {report.created} created, "
            f"{report.duplicates} duplicate, {report.invalid} invalid"
        )
        return report
