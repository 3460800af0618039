"""
Batch webhook processor.

Loads every *.json webhook document from a folder into the message log:

    wa-inbox-process ./webhook-data
"""

import argparse
import logging
import sys
from typing import List, Optional

from wa_inbox.config import settings
from wa_inbox.errors import StorageError
from wa_inbox.ingestion import IngestionEngine
from wa_inbox.logging_utils import setup_logging
from wa_inbox.storage import SessionLocal, init_db


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load webhook JSON files into the message store")
    parser.add_argument(
        "directory",
        nargs="?",
        default=settings.WEBHOOK_DATA_DIR,
        help=f"Folder containing webhook JSON files (default: {settings.WEBHOOK_DATA_DIR})",
    )
    parser.add_argument(
        "--business-number",
        default=settings.BUSINESS_PHONE_NUMBER,
        help="Business phone number for documents without metadata",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("wa_inbox.process_webhooks")

    try:
        init_db()
        with SessionLocal() as db:
            engine = IngestionEngine(db, args.business_number, logger=logging.getLogger("wa_inbox.ingestion"))
            report = engine.ingest_directory(args.directory)
    except FileNotFoundError as e:
        logger.error(f"{e}. Create the folder and add webhook JSON files to process")
        return 1
    except StorageError as e:
        logger.error(f"Fatal error: {e.message}")
        return 1

    logger.info(
        "Processing completed",
        extra={
            "files": report.documents,
            "skipped_files": report.skipped_documents,
            "created": report.created,
            "duplicates": report.duplicates,
            "invalid": report.invalid,
            "statuses_updated": report.statuses_updated,
            "statuses_unmatched": report.statuses_unmatched,
        },
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
