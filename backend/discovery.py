"""Candidate discovery: frequent words that have no glossary entry yet."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from corpus import iter_markdown_files, page_name, read_document
from markdown_spans import glossary_link_predicate, strip_code_fences, strip_links, strip_section, tokenize
from models import CandidateCluster
from relinker import TERMS_MENTIONED_HEADING
from term_store import TOC_FILENAME
from variant_index import VariantIndex

logger = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"\W+")
_DIGIT_RE = re.compile(r"\d")

MIN_TOKEN_LENGTH = 3


def _env_int(name: str, default: int) -> int:
    try:
        return max(1, int(os.environ.get(name, str(default))))
    except ValueError:
        logger.warning("Ignoring non-integer %s", name)
        return default


def _env_float(name: str, default: float) -> float:
    try:
        value = float(os.environ.get(name, str(default)))
    except ValueError:
        logger.warning("Ignoring non-numeric %s", name)
        return default
    return min(1.0, max(0.0, value))


def levenshtein(a: str, b: str, max_dist: int = 3) -> int:
    """Bounded Levenshtein distance; anything above ``max_dist`` is ``max_dist + 1``.

    Stops once a whole row exceeds the budget. An empty side returns the
    other side's length directly.
    """
    a = a or ""
    b = b or ""
    if a == b:
        return 0
    if abs(len(a) - len(b)) > max_dist:
        return max_dist + 1
    if not a or not b:
        return max(len(a), len(b))

    # Ensure a is shorter.
    if len(a) > len(b):
        a, b = b, a

    prev = list(range(len(a) + 1))
    for i, ch_b in enumerate(b, start=1):
        cur = [i]
        min_row = i
        for j, ch_a in enumerate(a, start=1):
            cost = 0 if ch_a == ch_b else 1
            val = min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost)
            cur.append(val)
            min_row = min(min_row, val)
        prev = cur
        if min_row > max_dist:
            return max_dist + 1
    return prev[-1]


def similarity(a: str, b: str, threshold: float = 0.0) -> float:
    """``1 - distance / max(len)``; pairs below ``threshold`` may report 0.0."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    # Small epsilon so 0.2 * 5 is not truncated to 0.
    budget = int((1.0 - threshold) * longest + 1e-9)
    distance = levenshtein(a, b, max_dist=budget)
    if distance > budget:
        return 0.0
    return 1.0 - distance / longest


@dataclass
class TokenStats:
    frequency: int = 0
    files: Set[str] = field(default_factory=set)


class CandidateDiscovery:
    """Counts unglossaried words across the corpus and clusters near-duplicates."""

    def __init__(
        self,
        project_root: Path,
        glossary_dir: Path,
        index: VariantIndex,
        *,
        ignored: Iterable[str] = (),
        exclude_dirs: Iterable[str] = (),
        min_count: Optional[int] = None,
        min_files: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
    ):
        self.project_root = Path(project_root)
        self.glossary_dir = Path(glossary_dir)
        self.index = index
        self.ignored = {word.casefold() for word in ignored}
        self.exclude_dirs = tuple(exclude_dirs)
        self.min_count = min_count or _env_int("GLOSSLINK_MIN_COUNT", 3)
        self.min_files = min_files or _env_int("GLOSSLINK_MIN_FILES", 2)
        self.similarity_threshold = (
            similarity_threshold
            if similarity_threshold is not None
            else _env_float("GLOSSLINK_CLUSTER_SIMILARITY", 0.8)
        )

    def count(self) -> Dict[str, TokenStats]:
        """Frequency and document set per eligible token, in first-seen order."""
        stats: Dict[str, TokenStats] = {}
        for path in iter_markdown_files(
            self.project_root, exclude_dirs=self.exclude_dirs, skip_paths=[self.glossary_dir]
        ):
            page = page_name(self.project_root, path)
            text = self._prose(read_document(path), path.parent)
            for raw in _NON_WORD_RE.split(text):
                token = raw.casefold()
                if not self.eligible(token):
                    continue
                entry = stats.setdefault(token, TokenStats())
                entry.frequency += 1
                entry.files.add(page)
        return stats

    def eligible(self, token: str) -> bool:
        if len(token) < MIN_TOKEN_LENGTH or _DIGIT_RE.search(token):
            return False
        # owner_of folds, so case-sensitive spellings count as known too.
        return token not in self.ignored and self.index.owner_of(token) is None

    def _prose(self, text: str, document_dir: Path) -> str:
        """Text minus generated glossary links, the appendix and code fences."""
        text, _ = strip_section(text, TERMS_MENTIONED_HEADING)
        predicate = glossary_link_predicate(document_dir, self.glossary_dir, toc_name=TOC_FILENAME)
        text, _ = strip_links(tokenize(text, predicate))
        return strip_code_fences(text)

    def suggest(self) -> List[CandidateCluster]:
        stats = self.count()
        frequent = [
            (token, entry)
            for token, entry in stats.items()
            if entry.frequency >= self.min_count and len(entry.files) >= self.min_files
        ]
        clusters = self.cluster(frequent)
        logger.info(
            "Discovery: %d distinct tokens, %d frequent, %d clusters",
            len(stats),
            len(frequent),
            len(clusters),
        )
        return clusters

    def cluster(self, tokens: List[tuple]) -> List[CandidateCluster]:
        """Greedy seed clustering over ``(token, TokenStats)`` pairs."""
        # sorted() is stable, so equal frequencies keep first-seen order.
        ordered = sorted(tokens, key=lambda item: -item[1].frequency)
        absorbed: Set[str] = set()
        clusters: List[CandidateCluster] = []
        for position, (seed, seed_stats) in enumerate(ordered):
            if seed in absorbed:
                continue
            absorbed.add(seed)
            members = [seed]
            total = seed_stats.frequency
            files = set(seed_stats.files)
            for token, token_stats in ordered[position + 1 :]:
                if token in absorbed:
                    continue
                if similarity(seed, token, self.similarity_threshold) >= self.similarity_threshold - 1e-9:
                    absorbed.add(token)
                    members.append(token)
                    total += token_stats.frequency
                    files |= token_stats.files
            clusters.append(CandidateCluster(members=members, total_frequency=total, files=sorted(files)))
        clusters.sort(key=lambda c: -c.total_frequency)
        return clusters
