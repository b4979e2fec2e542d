"""Markdown span tokenizer shared by linking, renaming and delinking.

Prose is split into a flat sequence of spans that concatenate back to the
exact input:

- ``WORD``: a ``\\b[\\w'-]+\\b`` token, eligible for glossary matching.
- ``LINK``: a markdown link accepted by the caller's link predicate.
- ``TEXT``: everything else, copied verbatim. Fenced code, inline code,
  HTML comments, bare URLs, images and links the predicate rejects are
  opaque ``TEXT`` so nothing is ever linked inside them.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple
from urllib.parse import unquote


class SpanKind(str, Enum):
    TEXT = "text"
    WORD = "word"
    LINK = "link"


@dataclass
class Span:
    kind: SpanKind
    text: str
    label: str = ""
    target: str = ""


LinkPredicate = Callable[[str], bool]

WORD_RE = re.compile(r"\b[\w'-]+\b")

_MARKUP_RE = re.compile(
    r"(?P<fence>^[ \t]*(?P<ticks>`{3,}|~{3,}).*?(?:\n[ \t]*(?P=ticks)[^\n]*|\Z))"
    r"|(?P<comment><!--.*?-->)"
    r"|(?P<code>`[^`\n]+`)"
    r"|(?P<link>(?P<bang>!?)\[(?P<label>[^\]\n]+)\]\((?P<target>[^)\s]*)(?:\s+\"[^\"\n]*\")?\))"
    r"|(?P<url><?(?:https?|ftp)://[^\s<>)\]]+>?)",
    re.MULTILINE | re.DOTALL,
)

_FENCE_RE = re.compile(r"^[ \t]*(`{3,}|~{3,}).*?(?:\n[ \t]*\1[^\n]*|\Z)", re.MULTILINE | re.DOTALL)
_EXTERNAL_TARGET_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//)", re.IGNORECASE)

ENTRY_FENCE = "```glossary-entry"
LEGACY_ENTRY_START = "<!-- glossary-entry:start -->"


def _split_words(segment: str) -> List[Span]:
    spans: List[Span] = []
    cursor = 0
    for match in WORD_RE.finditer(segment):
        if match.start() > cursor:
            spans.append(Span(SpanKind.TEXT, segment[cursor : match.start()]))
        spans.append(Span(SpanKind.WORD, match.group(0)))
        cursor = match.end()
    if cursor < len(segment):
        spans.append(Span(SpanKind.TEXT, segment[cursor:]))
    return spans


def tokenize(text: str, is_link: Optional[LinkPredicate] = None) -> List[Span]:
    spans: List[Span] = []
    cursor = 0
    for match in _MARKUP_RE.finditer(text or ""):
        if match.start() > cursor:
            spans.extend(_split_words(text[cursor : match.start()]))
        target = match.group("target")
        if (
            match.group("link") is not None
            and not match.group("bang")
            and is_link is not None
            and is_link(target)
        ):
            spans.append(
                Span(SpanKind.LINK, match.group(0), label=match.group("label"), target=target)
            )
        else:
            spans.append(Span(SpanKind.TEXT, match.group(0)))
        cursor = match.end()
    if text and cursor < len(text):
        spans.extend(_split_words(text[cursor:]))
    return spans


def render(spans: Iterable[Span]) -> str:
    return "".join(span.text for span in spans)


def strip_links(spans: Iterable[Span]) -> Tuple[str, int]:
    """Replace every LINK span by its label. Returns the text and links removed."""
    parts: List[str] = []
    removed = 0
    for span in spans:
        if span.kind == SpanKind.LINK:
            parts.append(span.label)
            removed += 1
        else:
            parts.append(span.text)
    return "".join(parts), removed


def format_link(label: str, target: str) -> str:
    return f"[{label}]({target})"


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub(" ", text or "")


# ---------------------------------------------------------------------------
# Document regions
# ---------------------------------------------------------------------------


def split_at_entry(text: str) -> Tuple[str, str]:
    """Split a document into its prose region and its metadata region."""
    positions = [
        idx for idx in (text.find(ENTRY_FENCE), text.find(LEGACY_ENTRY_START)) if idx != -1
    ]
    if not positions:
        return text, ""
    cut = min(positions)
    return text[:cut], text[cut:]


def _section_re(heading: str) -> re.Pattern:
    return re.compile(rf"(?m)^##[ \t]+{re.escape(heading)}[ \t]*$")


def strip_section(text: str, heading: str) -> Tuple[str, bool]:
    """Drop a generated ``## <heading>`` section and everything after it."""
    match = _section_re(heading).search(text)
    if not match:
        return text, False
    return text[: match.start()].rstrip() + "\n", True


# ---------------------------------------------------------------------------
# Link targets
# ---------------------------------------------------------------------------


def relative_link(from_dir: Path, target: Path) -> str:
    rel = os.path.relpath(target, from_dir).replace(os.sep, "/")
    return rel if rel.startswith(".") else f"./{rel}"


def link_path(target: str) -> str:
    return unquote(target.split("#", 1)[0])


def glossary_link_predicate(
    document_dir: Path, glossary_dir: Path, *, toc_name: str
) -> LinkPredicate:
    """Accept links whose target lands inside the glossary directory."""
    glossary_root = os.path.normpath(str(glossary_dir))
    segment = f"/{glossary_dir.name}/"

    def is_glossary_link(target: str) -> bool:
        if not target or _EXTERNAL_TARGET_RE.match(target):
            return False
        path = link_path(target)
        if not path.endswith(".md") or path.rsplit("/", 1)[-1] == toc_name:
            return False
        resolved = os.path.normpath(os.path.join(str(document_dir), path))
        if os.path.dirname(resolved) == glossary_root:
            return True
        return segment in f"/{path}"

    return is_glossary_link


def local_markdown_link(target: str) -> bool:
    """Any relative link to a markdown file, optionally with an anchor."""
    if not target or _EXTERNAL_TARGET_RE.match(target):
        return False
    return link_path(target).endswith(".md")


def target_slug(target: str) -> str:
    name = link_path(target).rsplit("/", 1)[-1]
    return name[: -len(".md")] if name.endswith(".md") else name
