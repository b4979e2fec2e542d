"""Reverse index of which pages mention each glossary term."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Set

from term_store import TermStore

logger = logging.getLogger(__name__)


class MentionLedger:
    """Mention events collected during one relink pass."""

    def __init__(self):
        self._pages: Dict[str, Set[str]] = defaultdict(set)

    def record(self, singular: str, page: str) -> None:
        self._pages[singular].add(page)

    def record_all(self, singulars: Iterable[str], page: str) -> None:
        for singular in singulars:
            self.record(singular, page)

    def pages_for(self, singular: str) -> List[str]:
        return sorted(self._pages.get(singular, ()))

    def __len__(self) -> int:
        return sum(len(pages) for pages in self._pages.values())


class MentionSynchronizer:
    """Overwrites every term's ``mentioned_on_pages`` from a finished pass.

    Terms without events are cleared, so pages that were renamed or deleted
    never linger.
    """

    def __init__(self, store: TermStore):
        self.store = store

    def apply(self, ledger: MentionLedger) -> int:
        """Persist the ledger. Returns how many glossary documents changed."""
        changed = 0
        for document in self.store.documents():
            document.term.mentioned_on_pages = ledger.pages_for(document.term.singular)
            if self.store.save(document):
                changed += 1
        logger.info("Synchronised mentions for %d terms (%d documents changed)", len(self.store.documents()), changed)
        return changed
