"""Spelling -> canonical term lookup table, rebuilt before every pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from errors import SpellingCollisionError
from models import Term

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpellingConflict:
    spelling: str
    owner: str
    claimant: str

    def describe(self) -> str:
        return f'"{self.spelling}": kept "{self.owner}", ignored "{self.claimant}"'


class VariantIndex:
    """Maps every known spelling to the singular of the term that owns it.

    Case-insensitive spellings are keyed case-folded. Spellings flagged
    case-sensitive only match the exact token. The first term to register a
    spelling keeps it; later claims are recorded as conflicts.
    """

    def __init__(self, *, strict: bool = False):
        self.strict = strict
        self._folded: Dict[str, str] = {}
        self._exact: Dict[str, str] = {}
        self._exact_folded: Dict[str, str] = {}
        self._spellings: Dict[str, List[str]] = {}
        self.conflicts: List[SpellingConflict] = []

    @classmethod
    def build(cls, terms: Iterable[Term], *, strict: bool = False) -> "VariantIndex":
        index = cls(strict=strict)
        for term in terms:
            index.register(term)
        return index

    def register(self, term: Term) -> None:
        owned = self._spellings.setdefault(term.singular, [])
        for spelling, case_sensitive in term.spelling_forms():
            spelling = spelling.strip()
            if not spelling:
                continue
            owner = self.owner_of(spelling)
            if owner is not None and owner != term.singular:
                conflict = SpellingConflict(spelling=spelling, owner=owner, claimant=term.singular)
                if self.strict:
                    raise SpellingCollisionError(spelling, owner, term.singular)
                logger.warning("Spelling collision %s", conflict.describe())
                self.conflicts.append(conflict)
                continue
            if case_sensitive:
                self._exact.setdefault(spelling, term.singular)
                self._exact_folded.setdefault(spelling.casefold(), term.singular)
            else:
                self._folded.setdefault(spelling.casefold(), term.singular)
            if spelling not in owned:
                owned.append(spelling)

    def lookup(self, word: str) -> Optional[str]:
        if not word:
            return None
        exact = self._exact.get(word)
        if exact is not None:
            return exact
        return self._folded.get(word.casefold())

    def spellings(self, singular: str) -> List[str]:
        return list(self._spellings.get(singular, []))

    def canonical_terms(self) -> List[str]:
        return list(self._spellings.keys())

    def __contains__(self, word: object) -> bool:
        return isinstance(word, str) and self.lookup(word) is not None

    def __len__(self) -> int:
        return len(self._folded) + len(self._exact)

    def owner_of(self, spelling: str) -> Optional[str]:
        """Term that already claims ``spelling`` under the registration rule.

        Unlike ``lookup`` this ignores case-sensitivity: a case-sensitive
        spelling claims every spelling that folds to the same key.
        """
        if not spelling:
            return None
        key = spelling.casefold()
        return self._folded.get(key) or self._exact_folded.get(key)
