"""
Unit tests for glossary link insertion.
"""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from models import Term
from relinker import Relinker
from variant_index import VariantIndex

ROOT = Path("/project")
GLOSSARY = ROOT / "glossary"


def _relinker(*terms):
    terms = terms or (Term(singular="cache", plural="caches"), Term(singular="disk", plural="disks"))
    return Relinker(VariantIndex.build(terms), GLOSSARY)


class TestRelinkDocument:
    """Test suite for ordinary corpus documents."""

    @pytest.mark.unit
    def test_cache_guide_scenario(self):
        text = "The cache stores caches of results. The cache is fast.\n"
        outcome = _relinker().relink_document(text, ROOT / "guide.md")

        assert outcome.text == (
            "The [cache](./glossary/cache.md) stores caches of results. The cache is fast.\n"
            "\n## Glossary Terms Mentioned\n\n"
            "- [cache](./glossary/cache.md)\n"
        )
        assert outcome.mentioned == ["cache"]
        assert outcome.links_inserted == 1

    @pytest.mark.unit
    def test_relink_is_idempotent(self):
        relinker = _relinker()
        text = "Disks and the Cache.\n\nMore about caches and disks.\n"
        first = relinker.relink_document(text, ROOT / "docs" / "guide.md")
        second = relinker.relink_document(first.text, ROOT / "docs" / "guide.md")

        assert second.text == first.text
        assert second.links_removed == 2

    @pytest.mark.unit
    def test_at_most_one_link_per_term(self):
        text = "cache caches Cache CACHES cache's disk"
        outcome = _relinker().relink_document(text, ROOT / "a.md")
        prose = outcome.text.split("## Glossary Terms Mentioned")[0]

        assert prose.count("glossary/cache.md") == 1
        assert prose.count("glossary/disk.md") == 1

    @pytest.mark.unit
    def test_label_keeps_original_inflection_and_appendix_shows_it(self):
        outcome = _relinker().relink_document("Caches everywhere.\n", ROOT / "a.md")

        assert outcome.text.startswith("[Caches](./glossary/cache.md) everywhere.")
        assert "- [cache](./glossary/cache.md) (Caches)" in outcome.text

    @pytest.mark.unit
    def test_links_are_relative_to_the_document(self):
        outcome = _relinker().relink_document("a cache", ROOT / "docs" / "deep" / "a.md")
        assert "[cache](../../glossary/cache.md)" in outcome.text

    @pytest.mark.unit
    def test_code_and_foreign_links_are_left_alone(self):
        text = "```\ncache\n```\n`cache` [cache docs](https://example.com/cache.md) [intro](./intro.md)\n"
        outcome = _relinker().relink_document(text, ROOT / "a.md")

        assert outcome.text == text
        assert outcome.mentioned == []

    @pytest.mark.unit
    def test_stale_appendix_is_removed_when_nothing_matches(self):
        text = "No terms here.\n\n## Glossary Terms Mentioned\n\n- [cache](./glossary/cache.md)\n"
        outcome = _relinker().relink_document(text, ROOT / "a.md")
        assert outcome.text == "No terms here.\n"

    @pytest.mark.unit
    def test_links_to_removed_terms_are_stripped(self):
        text = "See [buffer](./glossary/buffer.md) and the cache.\n"
        outcome = _relinker().relink_document(text, ROOT / "a.md")
        assert outcome.text.startswith("See buffer and the [cache](./glossary/cache.md).")

    @pytest.mark.unit
    def test_appendix_is_sorted(self):
        outcome = _relinker().relink_document("disk then cache", ROOT / "a.md")
        appendix = outcome.text.split("## Glossary Terms Mentioned\n\n")[1]
        assert appendix == "- [cache](./glossary/cache.md)\n- [disk](./glossary/disk.md)\n"


class TestRelinkProse:
    """Glossary bodies are relinked without an appendix."""

    @pytest.mark.unit
    def test_self_link_suppression(self):
        outcome = _relinker().relink_prose(
            "A cache sits in front of a disk.", GLOSSARY / "cache.md", self_term="cache"
        )
        assert outcome.text == "A cache sits in front of a [disk](./disk.md)."
        assert outcome.mentioned == ["disk"]

    @pytest.mark.unit
    def test_term_paths_override_slug(self):
        index = VariantIndex.build([Term(singular="cache")])
        relinker = Relinker(index, GLOSSARY, term_paths={"cache": GLOSSARY / "Cache-Notes.md"})
        outcome = relinker.relink_prose("cache", ROOT / "a.md")
        assert outcome.text == "[cache](./glossary/Cache-Notes.md)"
