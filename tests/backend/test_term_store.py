"""
Unit tests for the filesystem-backed term store.
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from errors import MalformedEntryError, TermExistsError, TermNotFoundError
from models import AlternateSpelling, Term
from term_store import TOC_FILENAME, TermStore


class TestTermStore:
    """Test suite for TermStore."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.glossary_dir = self.temp_dir / "glossary"
        self.store = TermStore(self.glossary_dir, self.temp_dir)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    @pytest.mark.unit
    def test_create_renders_document_layout(self):
        self.store.create(Term(singular="cache", plural="caches", definition="A fast store."))

        text = (self.glossary_dir / "cache.md").read_text(encoding="utf-8")
        assert text.startswith("# cache\n\nA fast store.\n\n```glossary-entry\n")
        assert '"plural": "caches"' in text
        assert text.endswith("## Mentioned on pages\n\n*None yet*\n")

    @pytest.mark.unit
    def test_create_refuses_existing_slug(self):
        self.store.create(Term(singular="cache"))
        with pytest.raises(TermExistsError):
            self.store.create(Term(singular="Cache"))

    @pytest.mark.unit
    def test_load_round_trips_terms_and_body(self):
        self.store.create(
            Term(
                singular="cache",
                plural="caches",
                alternates=[AlternateSpelling(singular="memo")],
                definition="A fast store.",
                mentioned_on_pages=["guide.md"],
            )
        )

        reloaded = TermStore(self.glossary_dir, self.temp_dir)
        documents = reloaded.load()

        assert len(documents) == 1
        document = documents[0]
        assert document.term.singular == "cache"
        assert document.term.alternates[0].singular == "memo"
        assert document.term.mentioned_on_pages == ["guide.md"]
        assert document.body.strip() == "A fast store."
        # Unchanged documents are not rewritten.
        assert reloaded.save(document) is False

    @pytest.mark.unit
    def test_mentions_render_as_links_relative_to_glossary(self):
        document = self.store.create(Term(singular="cache", mentioned_on_pages=["docs/guide.md"]))
        text = document.path.read_text(encoding="utf-8")
        assert "- [docs/guide.md](../docs/guide.md)" in text

    @pytest.mark.unit
    def test_lookup_is_case_insensitive(self):
        self.store.create(Term(singular="Cache"))
        assert self.store.find("cache") is not None
        with pytest.raises(TermNotFoundError):
            self.store.get("buffer")

    @pytest.mark.unit
    def test_malformed_entry_is_skipped_with_warning(self, caplog):
        self.glossary_dir.mkdir(parents=True)
        (self.glossary_dir / "broken.md").write_text(
            "# broken\n\n```glossary-entry\n{\"plural\": \"x\"}\n```\n", encoding="utf-8"
        )
        self.store.create(Term(singular="cache"))

        with caplog.at_level("WARNING"):
            documents = TermStore(self.glossary_dir, self.temp_dir).load()

        assert [doc.term.singular for doc in documents] == ["cache"]
        assert "broken.md" in caplog.text

    @pytest.mark.unit
    def test_malformed_entry_raises_in_strict_mode(self):
        self.glossary_dir.mkdir(parents=True)
        (self.glossary_dir / "broken.md").write_text(
            "# broken\n\n```glossary-entry\nnot json\n```\n", encoding="utf-8"
        )
        with pytest.raises(MalformedEntryError):
            TermStore(self.glossary_dir, self.temp_dir, strict=True).load()

    @pytest.mark.unit
    def test_legacy_entry_block_is_read_and_rewritten(self):
        self.glossary_dir.mkdir(parents=True)
        legacy = self.glossary_dir / "cache.md"
        legacy.write_text(
            "# cache\n\nOld prose.\n\n<!-- glossary-entry:start -->\n```json\n"
            '{"singular": "cache", "plural": "caches"}\n```\n<!-- glossary-entry:end -->\n',
            encoding="utf-8",
        )

        document = self.store.load()[0]
        assert document.term.plural == "caches"
        assert self.store.save(document) is True
        text = legacy.read_text(encoding="utf-8")
        assert "```glossary-entry" in text
        assert "<!-- glossary-entry:start -->" not in text
        assert "Old prose." in text

    @pytest.mark.unit
    def test_files_without_entry_are_ignored(self):
        self.glossary_dir.mkdir(parents=True)
        (self.glossary_dir / "notes.md").write_text("# just notes\n", encoding="utf-8")
        assert self.store.load() == []


class TestTableOfContents:
    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.glossary_dir = self.temp_dir / "glossary"
        self.store = TermStore(self.glossary_dir, self.temp_dir)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    @pytest.mark.unit
    def test_rebuild_sorts_case_insensitively(self):
        for singular in ("buffer", "API", "cache"):
            self.store.create(Term(singular=singular))

        assert self.store.rebuild_toc() == 3
        toc = (self.glossary_dir / TOC_FILENAME).read_text(encoding="utf-8")
        assert toc == (
            "# Glossary Table of Contents\n\n"
            "- [API](./api.md)\n"
            "- [buffer](./buffer.md)\n"
            "- [cache](./cache.md)\n"
        )

    @pytest.mark.unit
    def test_patch_swaps_single_entry(self):
        self.store.create(Term(singular="cache"))
        self.store.create(Term(singular="disk"))
        self.store.rebuild_toc()

        assert self.store.patch_toc("cache", "cache", "buffer", "buffer") is True
        toc = (self.glossary_dir / TOC_FILENAME).read_text(encoding="utf-8")
        assert "- [buffer](./buffer.md)" in toc
        assert "cache" not in toc
        assert "- [disk](./disk.md)" in toc

    @pytest.mark.unit
    def test_patch_rebuilds_when_entry_missing(self):
        self.store.create(Term(singular="buffer"))
        assert self.store.patch_toc("cache", "cache", "buffer", "buffer") is False
        toc = (self.glossary_dir / TOC_FILENAME).read_text(encoding="utf-8")
        assert "- [buffer](./buffer.md)" in toc
