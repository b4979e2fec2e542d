"""
Unit tests for the spelling -> canonical term index.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from errors import SpellingCollisionError
from models import AlternateSpelling, Term
from variant_index import VariantIndex


def _terms():
    return [
        Term(
            singular="cache",
            plural="caches",
            singular_possessive="cache's",
            alternates=[AlternateSpelling(singular="memo", plural="memos")],
        ),
        Term(singular="API", case_sensitive=True, plural="APIs"),
    ]


@pytest.mark.unit
def test_lookup_resolves_every_spelling_case_insensitively():
    index = VariantIndex.build(_terms())

    for word in ("cache", "Cache", "CACHES", "cache's", "memo", "Memos"):
        assert index.lookup(word) == "cache"
    assert index.lookup("buffer") is None
    assert index.lookup("") is None


@pytest.mark.unit
def test_case_sensitive_spellings_need_exact_match():
    index = VariantIndex.build(_terms())

    assert index.lookup("API") == "API"
    assert index.lookup("APIs") == "API"
    assert index.lookup("api") is None
    assert "api" not in index


@pytest.mark.unit
def test_first_registrant_keeps_a_colliding_spelling(caplog):
    terms = [
        Term(singular="cache", alternates=[AlternateSpelling(singular="store")]),
        Term(singular="store", plural="stores"),
    ]
    with caplog.at_level("WARNING"):
        index = VariantIndex.build(terms)

    assert index.lookup("store") == "cache"
    assert index.lookup("stores") == "store"
    assert len(index.conflicts) == 1
    assert index.conflicts[0].owner == "cache"
    assert index.conflicts[0].claimant == "store"
    assert "store" in caplog.text


@pytest.mark.unit
def test_case_sensitive_spelling_collides_with_folded_one():
    terms = [Term(singular="api"), Term(singular="API", case_sensitive=True)]
    index = VariantIndex.build(terms)
    assert index.lookup("API") == "api"
    assert len(index.conflicts) == 1


@pytest.mark.unit
def test_strict_mode_raises_on_collision():
    terms = [Term(singular="cache", plural="data"), Term(singular="data")]
    with pytest.raises(SpellingCollisionError) as excinfo:
        VariantIndex.build(terms, strict=True)
    assert excinfo.value.owner == "cache"


@pytest.mark.unit
def test_repeated_spelling_within_one_term_is_not_a_conflict():
    index = VariantIndex.build([Term(singular="data", plural="data")])
    assert index.conflicts == []
    assert index.spellings("data") == ["data"]
    assert index.canonical_terms() == ["data"]


@pytest.mark.unit
def test_owner_of_folds_case_sensitive_spellings():
    index = VariantIndex.build([Term(singular="Go", case_sensitive=True), Term(singular="cache")])

    assert index.lookup("go") is None
    assert index.owner_of("go") == "Go"
    assert index.owner_of("CACHE") == "cache"
    assert index.owner_of("disk") is None
    assert index.owner_of("") is None
