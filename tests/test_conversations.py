"""
Tests for conversation aggregation.
"""

import pytest

from wa_inbox.conversations import ConversationAggregator
from wa_inbox.ingestion import IngestionEngine

from conftest import BUSINESS_NUMBER, contact, text_message


@pytest.fixture
def ingest(db, make_document):
    engine = IngestionEngine(db, BUSINESS_NUMBER)

    def _ingest(messages, contacts):
        engine.ingest_document(make_document(messages=messages, contacts=contacts))

    return _ingest


@pytest.fixture
def aggregator(db):
    return ConversationAggregator(db)


class TestListMessages:

    def test_chronological_order(self, ingest, aggregator):
        alice = [contact("+1111", "Alice")]
        ingest([text_message("m3", "+1111", "third", 3000)], alice)
        ingest([text_message("m1", "+1111", "first", 1000)], alice)
        ingest([text_message("m2", BUSINESS_NUMBER, "second", 2000)], alice)

        messages = aggregator.list_messages("+1111")

        assert [m.message_id for m in messages] == ["m1", "m2", "m3"]
        assert all(a.timestamp <= b.timestamp for a, b in zip(messages, messages[1:]))

    def test_includes_both_directions(self, ingest, aggregator):
        alice = [contact("+1111", "Alice")]
        ingest([text_message("in", "+1111", "hi", 1000)], alice)
        ingest([text_message("out", BUSINESS_NUMBER, "hello", 1001)], alice)

        messages = aggregator.list_messages("+1111")

        assert [(m.message_id, m.is_outgoing) for m in messages] == [("in", False), ("out", True)]

    def test_other_conversations_excluded(self, ingest, aggregator):
        ingest([text_message("a", "+1111", "hi", 1000)], [contact("+1111", "Alice")])
        ingest([text_message("b", "+2222", "yo", 1000)], [contact("+2222", "Bob")])

        assert [m.message_id for m in aggregator.list_messages("+2222")] == ["b"]

    def test_unknown_conversation_is_empty(self, aggregator):
        assert aggregator.list_messages("+0000") == []


class TestListConversations:

    def test_summary_fields(self, ingest, aggregator):
        alice = [contact("+1111", "Alice")]
        ingest([text_message("m1", "+1111", "hi", 1000)], alice)
        ingest([text_message("m2", BUSINESS_NUMBER, "hello back", 2000)], alice)

        [summary] = aggregator.list_conversations()

        assert summary.conversation_id == "+1111"
        assert summary.contact_name == "Alice"
        assert summary.phone_number == "+1111"
        assert summary.last_message == "hello back"
        assert summary.last_message_time == 2000000
        assert summary.is_last_outgoing is True

    def test_sorted_by_last_message_time_desc(self, ingest, aggregator):
        ingest([text_message("a", "+1111", "old", 1000)], [contact("+1111", "Alice")])
        ingest([text_message("b", "+2222", "new", 3000)], [contact("+2222", "Bob")])
        ingest([text_message("c", "+3333", "mid", 2000)], [contact("+3333", "Carol")])

        ids = [s.conversation_id for s in aggregator.list_conversations()]

        assert ids == ["+2222", "+3333", "+1111"]

    def test_ties_broken_by_conversation_id(self, ingest, aggregator):
        ingest([text_message("b", "+2222", "x", 1000)], [contact("+2222", "Bob")])
        ingest([text_message("a", "+1111", "x", 1000)], [contact("+1111", "Alice")])

        ids = [s.conversation_id for s in aggregator.list_conversations()]

        assert ids == ["+1111", "+2222"]

    def test_outbound_only_contacts_excluded(self, ingest, aggregator):
        ingest([text_message("in", "+1111", "hi", 1000)], [contact("+1111", "Alice")])
        ingest([text_message("out", BUSINESS_NUMBER, "cold call", 2000)], [contact("+5555", "Eve")])

        ids = [s.conversation_id for s in aggregator.list_conversations()]

        assert ids == ["+1111"]

    def test_media_last_message_placeholder(self, ingest, aggregator):
        entry = {"id": "img", "from": "+1111", "type": "image", "timestamp": "1000"}
        ingest([entry], [contact("+1111", "Alice")])

        [summary] = aggregator.list_conversations()

        assert summary.last_message == "No message"

    def test_empty_store(self, aggregator):
        assert aggregator.list_conversations() == []


class TestStats:

    def test_counts(self, ingest, aggregator):
        ingest([text_message("a", "+1111", "hi", 1000), text_message("b", "+1111", "again", 1001)],
               [contact("+1111", "Alice")])
        ingest([text_message("c", "+2222", "yo", 1000)], [contact("+2222", "Bob")])
        ingest([text_message("d", BUSINESS_NUMBER, "out", 1002)], [contact("+5555", "Eve")])

        assert aggregator.stats() == {"total_messages": 4, "total_conversations": 2}
