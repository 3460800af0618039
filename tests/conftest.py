"""
Pytest configuration and shared fixtures.

Test environment variables are set here, before any wa_inbox import, and the
settings cache is cleared so they take effect.
"""

import os
import tempfile

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(tempfile.gettempdir(), f'wa_inbox_test_{os.getpid()}.db')}"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BUSINESS_PHONE_NUMBER"] = "+9999"
os.environ["CORS_ORIGIN"] = "*"

import pytest  # noqa: E402

from wa_inbox.config import get_settings  # noqa: E402
get_settings.cache_clear()

from fastapi.testclient import TestClient  # noqa: E402

from wa_inbox import models  # noqa: E402,F401
from wa_inbox.storage import Base, SessionLocal, engine  # noqa: E402


BUSINESS_NUMBER = "+9999"


@pytest.fixture(scope="function")
def db():
    """Database session over fresh tables for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    from wa_inbox.main import app

    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_document():
    """
    Build a webhook document.

    messages/statuses/contacts are lists of raw entries; business_number goes
    into value.metadata.display_phone_number unless None.
    """
    def _make(messages=None, statuses=None, contacts=None, business_number=BUSINESS_NUMBER):
        value = {"messaging_product": "whatsapp"}
        if business_number is not None:
            value["metadata"] = {"display_phone_number": business_number, "phone_number_id": "pn-1"}
        if contacts is not None:
            value["contacts"] = contacts
        if messages is not None:
            value["messages"] = messages
        if statuses is not None:
            value["statuses"] = statuses
        return {
            "payload_type": "whatsapp_webhook",
            "_id": "doc-1",
            "metaData": {
                "entry": [{"id": "entry-1", "changes": [{"field": "messages", "value": value}]}],
                "object": "whatsapp_business_account",
            },
        }

    return _make


def text_message(message_id, sender, body, timestamp):
    return {"id": message_id, "from": sender, "type": "text", "text": {"body": body}, "timestamp": str(timestamp)}


def contact(wa_id, name=None):
    entry = {"wa_id": wa_id}
    if name is not None:
        entry["profile"] = {"name": name}
    return entry
