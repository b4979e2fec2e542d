"""Filesystem-backed repository of glossary terms.

Each term lives in ``<glossary_dir>/<slug>.md``:

    # <singular>

    <prose: definition, usage, free text>

    ```glossary-entry
    { ...key-ordered JSON... }
    ```

    ## Mentioned on pages

    - [guide.md](../guide.md)

The JSON block is the record; the title line and the appendix are
regenerated from it on every save.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from errors import MalformedEntryError, TermExistsError, TermNotFoundError
from markdown_spans import relative_link, split_at_entry, strip_section
from models import EntryPayload, Term

logger = logging.getLogger(__name__)

TOC_FILENAME = "_gloss_TOC.md"
TOC_HEADER = "# Glossary Table of Contents\n\n"
MENTIONED_HEADING = "Mentioned on pages"
NO_MENTIONS = "*None yet*"

_ENTRY_RE = re.compile(
    r"^```glossary-entry[ \t]*\n(?P<body>.*?)^```[ \t]*$", re.MULTILINE | re.DOTALL
)
_LEGACY_ENTRY_RE = re.compile(
    r"<!-- glossary-entry:start -->\s*```json[ \t]*\n(?P<body>.*?)^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
_TITLE_LINE_RE = re.compile(r"#[ \t]+[^\n]*(?:\n|\Z)")


@dataclass
class TermDocument:
    """A term together with the prose of its backing document."""

    term: Term
    path: Path
    body: str = ""
    # File content as last read or written; saves are skipped when unchanged.
    raw: str = ""


class TermStore:
    """Loads, renders and persists the glossary directory."""

    def __init__(self, glossary_dir: Path, project_root: Optional[Path] = None, *, strict: bool = False):
        self.glossary_dir = Path(glossary_dir)
        self.project_root = Path(project_root) if project_root else self.glossary_dir.parent
        self.strict = strict
        self._documents: Dict[str, TermDocument] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def load(self) -> List[TermDocument]:
        documents: Dict[str, TermDocument] = {}
        for path in self.glossary_files():
            text = path.read_text(encoding="utf-8")
            entry = self.parse_entry(text, path)
            if entry is None:
                continue
            term = entry.to_term()
            key = term.singular.casefold()
            if key in documents:
                logger.warning(
                    "Duplicate glossary term %r in %s (already defined in %s); skipping",
                    term.singular,
                    path.name,
                    documents[key].path.name,
                )
                continue
            documents[key] = TermDocument(term=term, path=path, body=self._body_of(text), raw=text)
        self._documents = documents
        logger.debug("Loaded %d glossary terms from %s", len(documents), self.glossary_dir)
        return self.documents()

    def documents(self) -> List[TermDocument]:
        return list(self._documents.values())

    def terms(self) -> List[Term]:
        return [document.term for document in self._documents.values()]

    def find(self, singular: str) -> Optional[TermDocument]:
        return self._documents.get((singular or "").strip().casefold())

    def get(self, singular: str) -> TermDocument:
        document = self.find(singular)
        if document is None:
            raise TermNotFoundError(singular)
        return document

    def create(self, term: Term) -> TermDocument:
        self.ensure_structure()
        path = self.glossary_dir / term.filename
        if path.exists() or self.find(term.singular) is not None:
            raise TermExistsError(f"Glossary term already exists: {term.singular} ({path.name})")
        body = "\n\n".join(part.strip() for part in (term.definition, term.usage) if part.strip())
        document = TermDocument(term=term, path=path, body=body)
        self.save(document)
        self._documents[term.singular.casefold()] = document
        return document

    def save(self, document: TermDocument) -> bool:
        """Write the document if its rendered content changed."""
        content = self.render(document)
        if content == document.raw and document.path.exists():
            return False
        document.path.parent.mkdir(parents=True, exist_ok=True)
        document.path.write_text(content, encoding="utf-8")
        document.raw = content
        logger.debug("Wrote glossary document %s", document.path)
        return True

    def move(self, document: TermDocument, new_slug: str) -> Path:
        """Rename the backing file to ``<new_slug>.md``."""
        new_path = self.glossary_dir / f"{new_slug}.md"
        if new_path == document.path:
            return new_path
        if new_path.exists() and not new_path.samefile(document.path):
            raise TermExistsError(f"Cannot move {document.path.name}: {new_path.name} already exists")
        document.path.rename(new_path)
        document.path = new_path
        return new_path

    def reindex(self) -> None:
        """Refresh the singular lookup after terms were renamed in memory."""
        self._documents = {doc.term.singular.casefold(): doc for doc in self._documents.values()}

    def render(self, document: TermDocument) -> str:
        term = document.term
        parts = [f"# {term.singular}\n\n"]
        body = document.body.strip("\n")
        if body:
            parts.append(body + "\n\n")
        parts.append(self._entry_block(term))
        parts.append(f"\n\n## {MENTIONED_HEADING}\n\n{self._mentions_list(term)}\n")
        return "".join(parts)

    def parse_entry(self, text: str, path: Path) -> Optional[EntryPayload]:
        match = _ENTRY_RE.search(text) or _LEGACY_ENTRY_RE.search(text)
        if not match:
            return None
        try:
            return EntryPayload.model_validate_json(match.group("body"))
        except ValidationError as exc:
            if self.strict:
                raise MalformedEntryError(path, str(exc)) from exc
            logger.warning("Skipping %s: malformed glossary entry (%s)", path, exc.errors()[0]["msg"])
            return None

    # ------------------------------------------------------------------
    # Table of contents
    # ------------------------------------------------------------------
    def ensure_structure(self) -> None:
        self.glossary_dir.mkdir(parents=True, exist_ok=True)
        toc = self.glossary_dir / TOC_FILENAME
        if not toc.exists():
            toc.write_text(TOC_HEADER, encoding="utf-8")

    def rebuild_toc(self) -> int:
        self.ensure_structure()
        entries = []
        for path in self.glossary_files():
            lines = path.read_text(encoding="utf-8").split("\n", 1)
            first = lines[0].strip()
            title = re.sub(r"^#+\s*", "", first) if first.startswith("#") else path.stem
            entries.append((title, path.name))
        entries.sort(key=lambda item: (item[0].casefold(), item[1]))

        body = "\n".join(f"- [{title}](./{name})" for title, name in entries)
        (self.glossary_dir / TOC_FILENAME).write_text(TOC_HEADER + body + "\n", encoding="utf-8")
        return len(entries)

    def patch_toc(self, old_singular: str, old_slug: str, new_singular: str, new_slug: str) -> bool:
        """Swap the TOC bullet of a renamed term; rebuild the TOC if it is missing."""
        toc = self.glossary_dir / TOC_FILENAME
        pattern = re.compile(
            rf"^- \[{re.escape(old_singular)}\]\([^)\n]*{re.escape(old_slug)}\.md\)[ \t]*$",
            re.MULTILINE,
        )
        if toc.exists():
            text = toc.read_text(encoding="utf-8")
            patched, count = pattern.subn(f"- [{new_singular}](./{new_slug}.md)", text, count=1)
            if count:
                toc.write_text(patched, encoding="utf-8")
                return True
        self.rebuild_toc()
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def glossary_files(self) -> List[Path]:
        if not self.glossary_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.glossary_dir.glob("*.md")
            if path.is_file() and path.name != TOC_FILENAME
        )

    def _body_of(self, text: str) -> str:
        prose, _ = split_at_entry(text)
        prose, _ = strip_section(prose, MENTIONED_HEADING)
        prose = prose.lstrip("\n")
        title = _TITLE_LINE_RE.match(prose)
        return prose[title.end() :] if title else prose

    def _entry_block(self, term: Term) -> str:
        payload = EntryPayload.from_term(term).to_block_dict()
        return "```glossary-entry\n" + json.dumps(payload, indent=2, ensure_ascii=False) + "\n```"

    def _mentions_list(self, term: Term) -> str:
        if not term.mentioned_on_pages:
            return NO_MENTIONS
        lines = []
        for page in term.mentioned_on_pages:
            target = relative_link(self.glossary_dir, self.project_root / page)
            lines.append(f"- [{page}]({target})")
        return "\n".join(lines)
