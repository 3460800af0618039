"""
Tests for webhook document normalization.
"""

import json

import pytest

from wa_inbox.errors import MalformedPayloadError
from wa_inbox.normalizer import Contact, load_document, normalize_document, parse_document

from conftest import contact, text_message


class TestNormalizeDocument:

    def test_extracts_batch(self, make_document):
        document = make_document(
            messages=[text_message("m1", "+1111", "hi", 1000)],
            statuses=[{"id": "m0", "status": "read"}],
            contacts=[contact("+1111", "Alice")],
        )

        batch = normalize_document(document, "+5555")

        assert batch is not None
        assert batch.business_number == "+9999"
        assert batch.contacts == [Contact(wa_id="+1111", name="Alice")]
        assert [m["id"] for m in batch.message_entries] == ["m1"]
        assert batch.status_entries == [{"id": "m0", "status": "read"}]

    def test_business_number_falls_back_to_default(self, make_document):
        document = make_document(messages=[], business_number=None)

        batch = normalize_document(document, "+5555")

        assert batch.business_number == "+5555"

    def test_missing_business_number_is_not_fatal(self, make_document):
        batch = normalize_document(make_document(messages=[], business_number=None), "")

        assert batch is not None
        assert batch.business_number == ""

    def test_entries_default_to_empty(self, make_document):
        batch = normalize_document(make_document())

        assert batch.message_entries == []
        assert batch.status_entries == []
        assert batch.contacts == []

    def test_contact_without_profile_or_id(self):
        document = {"metaData": {"entry": [{"changes": [{"value": {
            "contacts": [{"wa_id": "+1111"}, {"profile": {"name": "No id"}}, "junk"],
        }}]}]}}

        batch = normalize_document(document)

        assert batch.contacts == [Contact(wa_id="+1111", name=None)]

    def test_non_dict_entries_dropped(self):
        document = {"metaData": {"entry": [{"changes": [{"value": {
            "messages": ["junk", {"id": "m1"}, 42],
            "statuses": "not a list",
        }}]}]}}

        batch = normalize_document(document)

        assert batch.message_entries == [{"id": "m1"}]
        assert batch.status_entries == []

    @pytest.mark.parametrize("document", [
        {},
        [],
        "text",
        None,
        {"metaData": {}},
        {"metaData": {"entry": []}},
        {"metaData": {"entry": [{}]}},
        {"metaData": {"entry": [{"changes": []}]}},
        {"metaData": {"entry": [{"changes": [{"field": "messages"}]}]}},
        {"metaData": {"entry": [{"changes": [{"value": "x"}]}]}},
        {"entry": [{"changes": [{"value": {}}]}]},
    ])
    def test_missing_structure_yields_no_batch(self, document):
        assert normalize_document(document, "+9999") is None


class TestLoadDocument:

    def test_parse_document(self):
        assert parse_document(b'{"a": 1}') == {"a": 1}

    def test_parse_invalid_json(self):
        with pytest.raises(MalformedPayloadError):
            parse_document(b"not json", source="x.json")

    def test_load_file(self, tmp_path, make_document):
        path = tmp_path / "doc.json"
        path.write_text(json.dumps(make_document(messages=[])))

        assert normalize_document(load_document(path)) is not None

    def test_load_invalid_file_names_source(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{")

        with pytest.raises(MalformedPayloadError) as exc_info:
            load_document(path)
        assert exc_info.value.source == "broken.json"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(MalformedPayloadError):
            load_document(tmp_path / "missing.json")
