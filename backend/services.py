"""Service layer coordinating the term store, relinker and corpus passes."""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Iterable, List, Optional

from corpus import iter_markdown_files, page_name, read_document, write_document
from discovery import CandidateDiscovery, similarity
from errors import SpellingCollisionError, TermExistsError
from markdown_spans import (
    SpanKind,
    glossary_link_predicate,
    local_markdown_link,
    strip_links,
    tokenize,
)
from mention_sync import MentionLedger, MentionSynchronizer
from models import (
    CandidateCluster,
    DelinkResultPayload,
    DocumentCountPayload,
    EntryPayload,
    IgnoreResponsePayload,
    RelinkResultPayload,
    RenameRequest,
    RenameResultPayload,
    SearchHitPayload,
    StatsPayload,
    Term,
    TermCountPayload,
    TermSummaryPayload,
)
from project_manager import ProjectInfo, ProjectManager
from relinker import Relinker
from renamer import RenamePropagator
from term_store import TOC_FILENAME, TermStore
from variant_index import VariantIndex

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20
SEARCH_FIELD_MIN = 0.5
STATS_LIMIT = 10
EXCERPT_CHARS = 160

_SEARCH_WORD_RE = re.compile(r"[\w'-]+")


class GlossaryService:
    """All glossary operations for one project."""

    def __init__(self, project: ProjectInfo, project_manager: Optional[ProjectManager] = None):
        self.project = project
        self.project_manager = project_manager or ProjectManager()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------
    def relink(self) -> RelinkResultPayload:
        """Full relink pass followed by the reverse-mention sync."""
        store = self._store()
        index = VariantIndex.build(store.terms(), strict=self.project.strict)
        relinker = Relinker(
            index,
            self.project.glossary_dir,
            term_paths={doc.term.singular: doc.path for doc in store.documents()},
        )
        ledger = MentionLedger()
        result = RelinkResultPayload(
            terms=len(store.documents()),
            conflicts=[conflict.describe() for conflict in index.conflicts],
        )

        # Glossary bodies are rewritten in memory; the sync below persists them.
        for document in store.documents():
            outcome = relinker.relink_prose(document.body, document.path, self_term=document.term.singular)
            document.body = outcome.text
            ledger.record_all(outcome.mentioned, page_name(self.project.root, document.path))
            result.files_scanned += 1
            result.links_inserted += outcome.links_inserted

        for path in self._corpus_files():
            original = read_document(path)
            outcome = relinker.relink_document(original, path)
            ledger.record_all(outcome.mentioned, page_name(self.project.root, path))
            result.files_scanned += 1
            result.links_inserted += outcome.links_inserted
            if write_document(path, outcome.text, original):
                result.files_changed += 1

        result.files_changed += MentionSynchronizer(store).apply(ledger)
        logger.info(
            "Relinked %d files (%d changed, %d links, %d terms)",
            result.files_scanned,
            result.files_changed,
            result.links_inserted,
            result.terms,
        )
        return result

    def rename(self, request: RenameRequest) -> RenameResultPayload:
        store = self._store()
        propagator = RenamePropagator(
            store,
            project_root=self.project.root,
            exclude_dirs=self.project.exclude_dirs,
        )
        result = propagator.rename(request)
        if request.relink:
            result.relink = self.relink()
        return result

    def suggest(
        self,
        min_count: Optional[int] = None,
        min_files: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
    ) -> List[CandidateCluster]:
        store = self._store()
        discovery = CandidateDiscovery(
            self.project.root,
            self.project.glossary_dir,
            VariantIndex.build(store.terms()),
            ignored=self.project_manager.read_ignore(self.project),
            exclude_dirs=self.project.exclude_dirs,
            min_count=min_count,
            min_files=min_files,
            similarity_threshold=similarity_threshold,
        )
        return discovery.suggest()

    def delink(self) -> DelinkResultPayload:
        """Strip every local markdown link from every document in the project."""
        result = DelinkResultPayload()
        for path in iter_markdown_files(self.project.root, exclude_dirs=self.project.exclude_dirs):
            if path.name == TOC_FILENAME:
                continue
            original = read_document(path)
            text, removed = strip_links(tokenize(original, local_markdown_link))
            result.links_removed += removed
            if write_document(path, text, original):
                result.files_changed += 1
        logger.info("Removed %d links from %d files", result.links_removed, result.files_changed)
        return result

    # ------------------------------------------------------------------
    # Terms
    # ------------------------------------------------------------------
    def add_term(self, term: Term) -> Term:
        if not (term.singular or "").strip():
            raise ValueError("Term singular must not be empty")
        term.singular = term.singular.strip()
        store = self._store()
        if store.find(term.singular) is not None or (store.glossary_dir / term.filename).exists():
            raise TermExistsError(f"Glossary term already exists: {term.singular} ({term.filename})")
        existing = VariantIndex.build(store.terms())
        for spelling, _ in term.spelling_forms():
            owner = existing.owner_of(spelling)
            if owner is not None:
                raise SpellingCollisionError(spelling, owner, term.singular)
        document = store.create(term)
        store.rebuild_toc()
        logger.info("Added glossary term %r (%s)", term.singular, document.path.name)
        return document.term

    def list_terms(self) -> List[TermSummaryPayload]:
        summaries = []
        for document in self._store().documents():
            term = document.term
            summaries.append(
                TermSummaryPayload(
                    singular=term.singular,
                    slug=document.path.stem,
                    plural=term.plural,
                    alternates=[alt.singular for alt in term.alternates],
                    definition_excerpt=_excerpt(term.definition or document.body),
                    mention_count=len(term.mentioned_on_pages),
                )
            )
        summaries.sort(key=lambda summary: summary.singular.casefold())
        return summaries

    def get_term(self, singular: str) -> EntryPayload:
        return EntryPayload.from_term(self._store().get(singular).term)

    def rebuild_toc(self) -> int:
        return TermStore(self.project.glossary_dir, self.project.root).rebuild_toc()

    def add_ignored(self, words: Iterable[str]) -> IgnoreResponsePayload:
        added, total = self.project_manager.add_ignored(self.project, words)
        return IgnoreResponsePayload(added=added, total=total)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def stats(self) -> StatsPayload:
        store = self._store()
        terms = sorted(store.terms(), key=lambda term: term.singular.casefold())
        ranked = sorted(terms, key=lambda term: -len(term.mentioned_on_pages))

        link_counts: Counter = Counter()
        for path in self._corpus_files():
            predicate = glossary_link_predicate(path.parent, self.project.glossary_dir, toc_name=TOC_FILENAME)
            links = sum(1 for span in tokenize(read_document(path), predicate) if span.kind == SpanKind.LINK)
            if links:
                link_counts[page_name(self.project.root, path)] = links

        return StatsPayload(
            total_terms=len(terms),
            orphan_terms=[term.singular for term in terms if not term.mentioned_on_pages],
            top_terms=[
                TermCountPayload(singular=term.singular, count=len(term.mentioned_on_pages))
                for term in ranked[:STATS_LIMIT]
                if term.mentioned_on_pages
            ],
            top_documents=[
                DocumentCountPayload(path=path, count=count)
                for path, count in sorted(link_counts.items(), key=lambda item: (-item[1], item[0]))[
                    :STATS_LIMIT
                ]
            ],
        )

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> List[SearchHitPayload]:
        """Fuzzy search over singular, alternate spellings and definitions."""
        needle = (query or "").strip().casefold()
        if not needle:
            return []

        hits: List[SearchHitPayload] = []
        for document in self._store().documents():
            term = document.term
            spellings = [form for form, _ in term.spelling_forms() if form != term.singular]
            definition = term.definition or document.body
            fields = (
                _field_score(needle, [term.singular]),
                _field_score(needle, spellings),
                _field_score(needle, [definition], words=True),
            )
            # At least one field has to match on its own.
            if max(fields) < SEARCH_FIELD_MIN:
                continue
            score = 0.6 * fields[0] + 0.3 * fields[1] + 0.1 * fields[2]
            hits.append(
                SearchHitPayload(
                    singular=term.singular,
                    score=round(score, 4),
                    definition=_excerpt(definition),
                    path=page_name(self.project.root, document.path),
                    mentioned_on_pages=list(term.mentioned_on_pages),
                )
            )
        hits.sort(key=lambda hit: (-hit.score, hit.singular.casefold()))
        return hits[:limit]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _store(self) -> TermStore:
        store = TermStore(self.project.glossary_dir, self.project.root, strict=self.project.strict)
        store.load()
        return store

    def _corpus_files(self):
        return iter_markdown_files(
            self.project.root,
            exclude_dirs=self.project.exclude_dirs,
            skip_paths=[self.project.glossary_dir],
        )


def _field_score(needle: str, values: Iterable[str], *, words: bool = False) -> float:
    best = 0.0
    for value in values:
        folded = (value or "").casefold()
        if not folded:
            continue
        if needle in folded:
            return 1.0
        candidates = _SEARCH_WORD_RE.findall(folded) if words else [folded]
        for candidate in candidates:
            best = max(best, similarity(needle, candidate))
    return best


def _excerpt(text: str) -> str:
    flat = " ".join((text or "").split())
    if len(flat) <= EXCERPT_CHARS:
        return flat
    return flat[: EXCERPT_CHARS - 3].rstrip() + "..."
