"""Rename a glossary term and propagate the new spellings through the corpus."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from corpus import iter_markdown_files, page_name, read_document, write_document
from errors import SpellingCollisionError, TermExistsError
from markdown_spans import (
    SpanKind,
    format_link,
    glossary_link_predicate,
    relative_link,
    split_at_entry,
    target_slug,
    tokenize,
)
from models import (
    AlternateSpelling,
    RenameRequest,
    RenameResultPayload,
    Term,
    default_plural,
    default_possessive,
    slugify,
)
from term_store import TOC_FILENAME, TermDocument, TermStore
from variant_index import VariantIndex

logger = logging.getLogger(__name__)


def match_case(source: str, replacement: str) -> str:
    """Capitalise the replacement's first character when the source starts uppercase."""
    if replacement and source[:1].isupper():
        return replacement[0].upper() + replacement[1:]
    return replacement


@dataclass
class SpellingMap:
    """Old spelling -> new spelling, honouring case-sensitive spellings."""

    folded: Dict[str, str] = field(default_factory=dict)
    exact: Dict[str, str] = field(default_factory=dict)

    def add(self, old: Optional[str], new: Optional[str], *, case_sensitive: bool = False) -> None:
        if not old or not new or old == new:
            return
        if case_sensitive:
            self.exact.setdefault(old, new)
        else:
            self.folded.setdefault(old.casefold(), new)

    def replacement(self, word: str) -> Optional[str]:
        if word in self.exact:
            return self.exact[word]
        return self.folded.get(word.casefold())

    def substitute(self, word: str) -> str:
        new = self.replacement(word)
        return word if new is None else match_case(word, new)


@dataclass
class RenamePlan:
    old_term: Term
    new_term: Term
    old_slug: str
    new_slug: str
    spellings: SpellingMap


def _derived(old_value: Optional[str], supplied: Optional[str], base: str, default) -> Optional[str]:
    """New value for an optional spelling: supplied, else derived when the old one existed."""
    if supplied:
        return supplied
    return default(base) if old_value else None


def _dedupe_alternates(term: Term) -> None:
    """Drop alternate spellings that repeat a primary or an earlier alternate."""
    seen: Set[str] = {form.casefold() for form in term.primary_spellings()}
    kept: List[AlternateSpelling] = []
    for alternate in term.alternates:
        if alternate.singular.casefold() in seen:
            continue
        for name in ("singular_possessive", "plural", "plural_possessive"):
            value = getattr(alternate, name)
            if value and value.casefold() in seen:
                setattr(alternate, name, None)
        seen.update(form.casefold() for form in alternate.spellings())
        kept.append(alternate)
    term.alternates = kept


def plan_rename(old: Term, request: RenameRequest, *, old_slug: Optional[str] = None) -> RenamePlan:
    """Compute the renamed term and the old -> new spelling map."""
    new_singular = request.new_singular
    new_plural = _derived(old.plural, request.new_plural, new_singular, default_plural)
    new_term = copy.deepcopy(old)
    new_term.singular = new_singular
    new_term.plural = new_plural
    new_term.singular_possessive = _derived(
        old.singular_possessive, request.new_singular_possessive, new_singular, default_possessive
    )
    new_term.plural_possessive = _derived(
        old.plural_possessive,
        request.new_plural_possessive,
        new_plural or new_singular,
        default_possessive,
    )

    spellings = SpellingMap()
    cs = old.case_sensitive
    spellings.add(old.singular, new_term.singular, case_sensitive=cs)
    spellings.add(old.plural, new_term.plural, case_sensitive=cs)
    spellings.add(old.singular_possessive, new_term.singular_possessive, case_sensitive=cs)
    spellings.add(old.plural_possessive, new_term.plural_possessive, case_sensitive=cs)

    supplied = [payload.to_alternate() for payload in request.new_alternates]
    alternates: List[AlternateSpelling] = []
    for position, old_alt in enumerate(old.alternates):
        if position >= len(supplied):
            alternates.append(copy.deepcopy(old_alt))
            continue
        new_alt = supplied[position]
        new_alt.plural = _derived(old_alt.plural, new_alt.plural, new_alt.singular, default_plural)
        new_alt.singular_possessive = _derived(
            old_alt.singular_possessive, new_alt.singular_possessive, new_alt.singular, default_possessive
        )
        new_alt.plural_possessive = _derived(
            old_alt.plural_possessive,
            new_alt.plural_possessive,
            new_alt.plural or new_alt.singular,
            default_possessive,
        )
        cs = old_alt.case_sensitive
        spellings.add(old_alt.singular, new_alt.singular, case_sensitive=cs)
        spellings.add(old_alt.plural, new_alt.plural, case_sensitive=cs)
        spellings.add(old_alt.singular_possessive, new_alt.singular_possessive, case_sensitive=cs)
        spellings.add(old_alt.plural_possessive, new_alt.plural_possessive, case_sensitive=cs)
        alternates.append(new_alt)
    alternates.extend(supplied[len(old.alternates) :])

    # The old spelling set stays resolvable as a legacy alternate.
    alternates.append(
        AlternateSpelling(
            singular=old.singular,
            case_sensitive=old.case_sensitive,
            singular_possessive=old.singular_possessive,
            plural=old.plural,
            plural_possessive=old.plural_possessive,
        )
    )
    new_term.alternates = alternates
    _dedupe_alternates(new_term)

    return RenamePlan(
        old_term=old,
        new_term=new_term,
        old_slug=old_slug or slugify(old.singular),
        new_slug=slugify(new_singular),
        spellings=spellings,
    )


class RenamePropagator:
    """Applies a rename to the term record, its file, the TOC and the corpus."""

    def __init__(
        self,
        store: TermStore,
        *,
        project_root: Path,
        exclude_dirs: Iterable[str] = (),
        toc_name: str = TOC_FILENAME,
    ):
        self.store = store
        self.project_root = Path(project_root)
        self.glossary_dir = store.glossary_dir
        self.exclude_dirs = tuple(exclude_dirs)
        self.toc_name = toc_name

    def rename(self, request: RenameRequest) -> RenameResultPayload:
        document = self.store.get(request.singular)
        plan = plan_rename(document.term, request, old_slug=document.path.stem)
        self._check_spellings(document, plan.new_term)
        new_path = self.glossary_dir / f"{plan.new_slug}.md"
        if new_path != document.path and new_path.exists() and not new_path.samefile(document.path):
            raise TermExistsError(f"Cannot rename to {request.new_singular}: {new_path.name} already exists")

        result = RenameResultPayload(
            old_singular=plan.old_term.singular,
            new_singular=plan.new_term.singular,
            old_slug=plan.old_slug,
            new_slug=plan.new_slug,
        )

        old_page = page_name(self.project_root, document.path)
        new_page = page_name(self.project_root, new_path)
        for other in self.store.documents():
            body, words, links = self.rewrite(other.body, other.path.parent, plan)
            other.body = body
            result.words_replaced += words
            result.links_retargeted += links
            other.term.mentioned_on_pages = [
                new_page if page == old_page else page for page in other.term.mentioned_on_pages
            ]

        document.term = plan.new_term
        self.store.move(document, plan.new_slug)
        self.store.reindex()
        for other in self.store.documents():
            if self.store.save(other):
                result.files_changed += 1
        self.store.patch_toc(plan.old_term.singular, plan.old_slug, plan.new_term.singular, plan.new_slug)

        # Glossary files that did not load as terms are swept like corpus pages.
        term_files = {other.path for other in self.store.documents()}
        freeform = [path for path in self.store.glossary_files() if path not in term_files]
        corpus = iter_markdown_files(
            self.project_root, exclude_dirs=self.exclude_dirs, skip_paths=[self.glossary_dir]
        )
        for path in [*freeform, *corpus]:
            original = read_document(path)
            prose, tail = split_at_entry(original)
            rewritten, words, links = self.rewrite(prose, path.parent, plan)
            if write_document(path, rewritten + tail, original):
                result.files_changed += 1
            result.words_replaced += words
            result.links_retargeted += links

        logger.info(
            "Renamed %r -> %r: %d files, %d words, %d links",
            result.old_singular,
            result.new_singular,
            result.files_changed,
            result.words_replaced,
            result.links_retargeted,
        )
        return result

    def rewrite(self, prose: str, document_dir: Path, plan: RenamePlan) -> Tuple[str, int, int]:
        """Apply the spelling map to one prose region.

        Returns the new text, the number of words replaced and the number of
        links retargeted.
        """
        predicate = glossary_link_predicate(document_dir, self.glossary_dir, toc_name=self.toc_name)
        new_target = relative_link(document_dir, self.glossary_dir / f"{plan.new_slug}.md")
        words = links = 0
        parts: List[str] = []
        for span in tokenize(prose, predicate):
            if span.kind == SpanKind.LINK and target_slug(span.target) == plan.old_slug:
                label = "".join(
                    plan.spellings.substitute(part.text) if part.kind == SpanKind.WORD else part.text
                    for part in tokenize(span.label)
                )
                anchor = span.target.partition("#")[2]
                parts.append(format_link(label, f"{new_target}#{anchor}" if anchor else new_target))
                links += 1
            elif span.kind == SpanKind.WORD:
                replaced = plan.spellings.substitute(span.text)
                if replaced != span.text:
                    words += 1
                parts.append(replaced)
            else:
                parts.append(span.text)
        return "".join(parts), words, links

    def _check_spellings(self, document: TermDocument, new_term: Term) -> None:
        others = VariantIndex.build(
            other.term for other in self.store.documents() if other is not document
        )
        for spelling, _ in new_term.spelling_forms():
            owner = others.owner_of(spelling)
            if owner is not None:
                raise SpellingCollisionError(spelling, owner, new_term.singular)
