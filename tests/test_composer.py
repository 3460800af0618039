"""
Tests for outgoing message composition.
"""

import re

import pytest

from wa_inbox import composer as composer_module
from wa_inbox.composer import MessageComposer, compose_outgoing, generate_message_id
from wa_inbox.conversations import ConversationAggregator
from wa_inbox.errors import ValidationError
from wa_inbox.ingestion import IngestionEngine

from conftest import BUSINESS_NUMBER, contact, text_message


@pytest.fixture
def composer(db):
    return MessageComposer(db, BUSINESS_NUMBER)


@pytest.fixture
def with_alice(db, make_document):
    IngestionEngine(db, BUSINESS_NUMBER).ingest_document(make_document(
        messages=[text_message("m1", "+1111", "hi", 1000)],
        contacts=[contact("+1111", "Alice")],
    ))


class TestComposeOutgoing:

    def test_record_fields(self):
        record = compose_outgoing("+1111", "  hello  ", BUSINESS_NUMBER, now_ms=1234)

        assert record.conversation_id == "+1111"
        assert record.to_number == "+1111"
        assert record.from_number == BUSINESS_NUMBER
        assert record.text == "hello"
        assert record.is_outgoing is True
        assert record.status == "sent"
        assert record.contact_name == "You"
        assert record.timestamp == 1234
        assert record.message_id.startswith("msg_1234_")

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_blank_text_rejected(self, text):
        with pytest.raises(ValidationError) as exc_info:
            compose_outgoing("+1111", text, BUSINESS_NUMBER)
        assert exc_info.value.message == "Message text is required"

    @pytest.mark.parametrize("conversation_id", ["", None])
    def test_missing_conversation_rejected(self, conversation_id):
        with pytest.raises(ValidationError):
            compose_outgoing(conversation_id, "hello", BUSINESS_NUMBER)

    def test_generated_ids(self):
        message_id = generate_message_id(1700000000000)

        assert re.fullmatch(r"msg_1700000000000_[0-9a-z]{9}", message_id)
        assert generate_message_id() != generate_message_id()


class TestMessageComposer:

    def test_send_persists_record(self, db, composer, with_alice):
        sent = composer.send("+1111", "hello")

        messages = ConversationAggregator(db).list_messages("+1111")
        assert [m.message_id for m in messages] == ["m1", sent.record.message_id]
        assert messages[-1].contact_name == "You"
        assert messages[-1].status == "sent"

    def test_send_updates_conversation_summary(self, db, composer, with_alice):
        composer.send("+1111", "hello")

        [summary] = ConversationAggregator(db).list_conversations()
        assert summary.last_message == "hello"
        assert summary.is_last_outgoing is True
        assert summary.contact_name == "Alice"

    def test_contact_label_from_history(self, composer, with_alice):
        assert composer.send("+1111", "hello").contact_label == "Alice"

    def test_contact_label_from_caller(self, composer, with_alice):
        assert composer.send("+1111", "hello", contact_name="Ally").contact_label == "Ally"

    def test_contact_label_unknown(self, composer):
        assert composer.send("+7777", "hello").contact_label == "Unknown"

    def test_id_collision_rejected(self, composer, monkeypatch):
        monkeypatch.setattr(composer_module, "generate_message_id", lambda now_ms=None: "msg_fixed")
        composer.send("+1111", "first")

        with pytest.raises(ValidationError):
            composer.send("+1111", "second")
