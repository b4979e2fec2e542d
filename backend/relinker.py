"""Glossary link insertion.

Every pass first strips the links a previous pass inserted, then links the
first occurrence of each term in the document again. Running it twice on an
unchanged corpus therefore yields identical files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from markdown_spans import (
    SpanKind,
    format_link,
    glossary_link_predicate,
    relative_link,
    split_at_entry,
    strip_links,
    strip_section,
    tokenize,
)
from models import slugify
from term_store import TOC_FILENAME
from variant_index import VariantIndex

TERMS_MENTIONED_HEADING = "Glossary Terms Mentioned"


@dataclass
class RelinkOutcome:
    text: str
    # canonical singular -> first matching token, in document order
    matches: Dict[str, str] = field(default_factory=dict)
    links_removed: int = 0

    @property
    def links_inserted(self) -> int:
        return len(self.matches)

    @property
    def mentioned(self) -> List[str]:
        return list(self.matches.keys())


class Relinker:
    """Rewrites documents so each glossary term is linked once."""

    def __init__(
        self,
        index: VariantIndex,
        glossary_dir: Path,
        *,
        term_paths: Optional[Dict[str, Path]] = None,
        toc_name: str = TOC_FILENAME,
    ):
        self.index = index
        self.glossary_dir = Path(glossary_dir)
        self.term_paths = dict(term_paths or {})
        self.toc_name = toc_name

    def target_for(self, singular: str, document_dir: Path) -> str:
        path = self.term_paths.get(singular) or self.glossary_dir / f"{slugify(singular)}.md"
        return relative_link(document_dir, path)

    def relink_prose(
        self, prose: str, document_path: Path, *, self_term: Optional[str] = None
    ) -> RelinkOutcome:
        """Strip old glossary links from ``prose`` and insert fresh ones.

        ``self_term`` names the term whose own document is being processed;
        it is never linked.
        """
        document_dir = Path(document_path).parent
        predicate = glossary_link_predicate(document_dir, self.glossary_dir, toc_name=self.toc_name)
        plain, removed = strip_links(tokenize(prose, predicate))

        matches: Dict[str, str] = {}
        parts: List[str] = []
        for span in tokenize(plain):
            if span.kind != SpanKind.WORD:
                parts.append(span.text)
                continue
            singular = self.index.lookup(span.text)
            if singular is None or singular == self_term or singular in matches:
                parts.append(span.text)
                continue
            matches[singular] = span.text
            parts.append(format_link(span.text, self.target_for(singular, document_dir)))
        return RelinkOutcome(text="".join(parts), matches=matches, links_removed=removed)

    def relink_document(self, text: str, document_path: Path) -> RelinkOutcome:
        """Relink an ordinary corpus document and regenerate its appendix."""
        body, _ = strip_section(text, TERMS_MENTIONED_HEADING)
        prose, tail = split_at_entry(body)
        outcome = self.relink_prose(prose, document_path)

        content = outcome.text + tail
        if outcome.matches:
            appendix = self.terms_mentioned(outcome.matches, Path(document_path).parent)
            content = f"{content.rstrip()}\n\n## {TERMS_MENTIONED_HEADING}\n\n{appendix}\n"
        outcome.text = content
        return outcome

    def terms_mentioned(self, matches: Dict[str, str], document_dir: Path) -> str:
        lines = []
        for singular in sorted(matches, key=lambda s: (s.casefold(), s)):
            shown = matches[singular]
            extra = "" if shown == singular else f" ({shown})"
            lines.append(f"- [{singular}]({self.target_for(singular, document_dir)}){extra}")
        return "\n".join(lines)
