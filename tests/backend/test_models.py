"""
Unit tests for term records and the entry block schema.
"""

import json
import os
import sys

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from models import (
    AlternatePayload,
    AlternateSpelling,
    EntryPayload,
    RenameRequest,
    Term,
    default_plural,
    default_possessive,
    slugify,
)


@pytest.mark.unit
def test_slugify_collapses_non_alphanumerics():
    assert slugify("Write-Back Cache") == "write-back-cache"
    assert slugify("  API / Gateway  ") == "api-gateway"
    assert slugify("Café") == "cafe"
    assert slugify("!!!") == "term"


@pytest.mark.unit
def test_default_forms():
    assert default_plural("cache") == "caches"
    assert default_possessive("cache") == "cache's"
    assert default_possessive("caches") == "caches'"


@pytest.mark.unit
def test_spelling_forms_include_alternates_with_their_case_flag():
    term = Term(
        singular="cache",
        plural="caches",
        alternates=[AlternateSpelling(singular="LRU", case_sensitive=True)],
    )
    assert term.spelling_forms() == [("cache", False), ("caches", False), ("LRU", True)]
    assert term.filename == "cache.md"


class TestEntryPayload:
    """The JSON stored in each glossary document."""

    @pytest.mark.unit
    def test_block_dict_key_order_and_omitted_optionals(self):
        term = Term(singular="cache", plural="caches", definition="A fast store.")
        block = EntryPayload.from_term(term).to_block_dict()

        assert list(block.keys()) == [
            "caseSensitive",
            "singular",
            "plural",
            "alternates",
            "definition",
            "usage",
            "mentionedOnPages",
        ]
        assert block["alternates"] == []
        assert "singularPossessive" not in block

    @pytest.mark.unit
    def test_alternate_keys_use_camel_case(self):
        term = Term(
            singular="cache",
            alternates=[AlternateSpelling(singular="memo", singular_possessive="memo's")],
        )
        block = EntryPayload.from_term(term).to_block_dict()
        assert block["alternates"] == [
            {"caseSensitive": False, "singular": "memo", "singularPossessive": "memo's"}
        ]

    @pytest.mark.unit
    def test_unknown_keys_survive_a_round_trip(self):
        raw = json.dumps({"singular": "cache", "alternates": [], "owner": "infra"})
        term = EntryPayload.model_validate_json(raw).to_term()

        assert term.extra == {"owner": "infra"}
        block = EntryPayload.from_term(term).to_block_dict()
        assert list(block.keys())[-1] == "owner"

    @pytest.mark.unit
    def test_null_and_blank_fields_are_normalised(self):
        raw = json.dumps(
            {"singular": " cache ", "plural": "", "definition": None, "mentionedOnPages": None}
        )
        payload = EntryPayload.model_validate_json(raw)
        assert payload.singular == "cache"
        assert payload.plural is None
        assert payload.definition == ""
        assert payload.mentioned_on_pages == []

    @pytest.mark.unit
    def test_blank_singular_is_rejected(self):
        with pytest.raises(ValidationError):
            EntryPayload.model_validate({"singular": "   "})


@pytest.mark.unit
def test_rename_request_accepts_alternate_payloads():
    request = RenameRequest(
        singular="cache",
        new_singular="buffer",
        new_plural="",
        new_alternates=[AlternatePayload(singular="memo")],
    )
    assert request.new_plural is None
    assert request.new_alternates[0].to_alternate() == AlternateSpelling(singular="memo")
    assert request.relink is False


@pytest.mark.unit
def test_rename_request_validates_from_field_names():
    request = RenameRequest.model_validate(
        {"singular": "cache", "new_singular": "buffer", "new_plural": "buffers", "relink": True}
    )
    assert (request.new_singular, request.new_plural, request.relink) == ("buffer", "buffers", True)
    assert "new_singular" in request.model_dump()
