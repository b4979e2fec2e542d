"""Shared models for the glossary engine: term records and API payloads."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase ASCII slug with every run of non-alphanumerics collapsed to '-'."""
    folded = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    slug = _SLUG_SEPARATOR_RE.sub("-", folded.lower()).strip("-")
    return slug or "term"


def default_plural(word: str) -> str:
    return f"{word}s"


def default_possessive(word: str) -> str:
    return f"{word}'" if word.lower().endswith("s") else f"{word}'s"


@dataclass
class AlternateSpelling:
    """A secondary way to spell or refer to a term."""

    singular: str
    case_sensitive: bool = False
    singular_possessive: Optional[str] = None
    plural: Optional[str] = None
    plural_possessive: Optional[str] = None

    def spellings(self) -> List[str]:
        forms = (self.singular, self.singular_possessive, self.plural, self.plural_possessive)
        return [form for form in forms if form]


@dataclass
class Term:
    """A canonical glossary entry backed by one markdown document."""

    singular: str
    case_sensitive: bool = False
    singular_possessive: Optional[str] = None
    plural: Optional[str] = None
    plural_possessive: Optional[str] = None
    alternates: List[AlternateSpelling] = field(default_factory=list)
    definition: str = ""
    usage: str = ""
    mentioned_on_pages: List[str] = field(default_factory=list)
    # Keys found in an existing entry block that this version does not model.
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def slug(self) -> str:
        return slugify(self.singular)

    @property
    def filename(self) -> str:
        return f"{self.slug}.md"

    def primary_spellings(self) -> List[str]:
        forms = (self.singular, self.singular_possessive, self.plural, self.plural_possessive)
        return [form for form in forms if form]

    def spelling_forms(self) -> List[Tuple[str, bool]]:
        """Every spelling paired with whether it matches case-sensitively."""
        forms = [(form, self.case_sensitive) for form in self.primary_spellings()]
        for alternate in self.alternates:
            forms.extend((form, alternate.case_sensitive) for form in alternate.spellings())
        return forms


@dataclass
class CandidateCluster:
    """Fuzzy-grouped unglossaried tokens proposed as one potential term."""

    members: List[str]
    total_frequency: int
    files: List[str]


# ---------------------------------------------------------------------------
# Entry block payloads (the JSON stored inside each glossary document)
# ---------------------------------------------------------------------------


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _required_text(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
    return value


class AlternatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    case_sensitive: bool = Field(default=False, alias="caseSensitive")
    singular: str
    singular_possessive: Optional[str] = Field(default=None, alias="singularPossessive")
    plural: Optional[str] = None
    plural_possessive: Optional[str] = Field(default=None, alias="pluralPossessive")

    @field_validator("singular", mode="before")
    @classmethod
    def check_singular(cls, value: Any) -> Any:
        return _required_text(value)

    @field_validator("singular_possessive", "plural", "plural_possessive", mode="before")
    @classmethod
    def check_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @classmethod
    def from_alternate(cls, alternate: AlternateSpelling) -> "AlternatePayload":
        return cls(
            case_sensitive=alternate.case_sensitive,
            singular=alternate.singular,
            singular_possessive=alternate.singular_possessive,
            plural=alternate.plural,
            plural_possessive=alternate.plural_possessive,
        )

    def to_alternate(self) -> AlternateSpelling:
        return AlternateSpelling(
            singular=self.singular,
            case_sensitive=self.case_sensitive,
            singular_possessive=self.singular_possessive,
            plural=self.plural,
            plural_possessive=self.plural_possessive,
        )


class EntryPayload(BaseModel):
    """Key-ordered schema of the ```glossary-entry``` block."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    case_sensitive: bool = Field(default=False, alias="caseSensitive")
    singular: str
    singular_possessive: Optional[str] = Field(default=None, alias="singularPossessive")
    plural: Optional[str] = None
    plural_possessive: Optional[str] = Field(default=None, alias="pluralPossessive")
    alternates: List[AlternatePayload] = Field(default_factory=list)
    definition: str = ""
    usage: str = ""
    mentioned_on_pages: List[str] = Field(default_factory=list, alias="mentionedOnPages")

    @field_validator("singular", mode="before")
    @classmethod
    def check_singular(cls, value: Any) -> Any:
        return _required_text(value)

    @field_validator("singular_possessive", "plural", "plural_possessive", mode="before")
    @classmethod
    def check_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("definition", "usage", mode="before")
    @classmethod
    def text_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("alternates", "mentioned_on_pages", mode="before")
    @classmethod
    def list_or_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_term(cls, term: Term) -> "EntryPayload":
        return cls(
            case_sensitive=term.case_sensitive,
            singular=term.singular,
            singular_possessive=term.singular_possessive,
            plural=term.plural,
            plural_possessive=term.plural_possessive,
            alternates=[AlternatePayload.from_alternate(a) for a in term.alternates],
            definition=term.definition,
            usage=term.usage,
            mentioned_on_pages=list(term.mentioned_on_pages),
            **term.extra,
        )

    def to_term(self) -> Term:
        return Term(
            singular=self.singular,
            case_sensitive=self.case_sensitive,
            singular_possessive=self.singular_possessive,
            plural=self.plural,
            plural_possessive=self.plural_possessive,
            alternates=[a.to_alternate() for a in self.alternates],
            definition=self.definition,
            usage=self.usage,
            mentioned_on_pages=list(self.mentioned_on_pages),
            extra=dict(self.model_extra or {}),
        )

    def to_block_dict(self) -> Dict[str, Any]:
        """Serialisable dict: optional spellings omitted when empty, extras last."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class TermSummaryPayload(BaseModel):
    singular: str
    slug: str
    plural: Optional[str] = None
    alternates: List[str] = Field(default_factory=list)
    definition_excerpt: str = ""
    mention_count: int = 0


class TermsResponsePayload(BaseModel):
    terms: List[TermSummaryPayload] = Field(default_factory=list)


class RenameRequest(BaseModel):
    singular: str
    new_singular: str
    new_plural: Optional[str] = None
    new_singular_possessive: Optional[str] = None
    new_plural_possessive: Optional[str] = None
    new_alternates: List[AlternatePayload] = Field(default_factory=list)
    relink: bool = False

    @field_validator("singular", "new_singular", mode="before")
    @classmethod
    def check_singulars(cls, value: Any) -> Any:
        return _required_text(value)

    @field_validator("new_plural", "new_singular_possessive", "new_plural_possessive", mode="before")
    @classmethod
    def check_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)


class RelinkResultPayload(BaseModel):
    terms: int = 0
    files_scanned: int = 0
    files_changed: int = 0
    links_inserted: int = 0
    conflicts: List[str] = Field(default_factory=list)


class RenameResultPayload(BaseModel):
    old_singular: str
    new_singular: str
    old_slug: str
    new_slug: str
    files_changed: int = 0
    words_replaced: int = 0
    links_retargeted: int = 0
    relink: Optional[RelinkResultPayload] = None


class CandidateClusterPayload(BaseModel):
    members: List[str]
    total_frequency: int
    files: List[str] = Field(default_factory=list)


class SuggestResponsePayload(BaseModel):
    clusters: List[CandidateClusterPayload] = Field(default_factory=list)


class IgnoreRequest(BaseModel):
    words: List[str] = Field(default_factory=list)


class IgnoreResponsePayload(BaseModel):
    added: int = 0
    total: int = 0


class TermCountPayload(BaseModel):
    singular: str
    count: int


class DocumentCountPayload(BaseModel):
    path: str
    count: int


class StatsPayload(BaseModel):
    total_terms: int = 0
    orphan_terms: List[str] = Field(default_factory=list)
    top_terms: List[TermCountPayload] = Field(default_factory=list)
    top_documents: List[DocumentCountPayload] = Field(default_factory=list)


class SearchHitPayload(BaseModel):
    singular: str
    score: float
    definition: str = ""
    path: str
    mentioned_on_pages: List[str] = Field(default_factory=list)


class SearchResponsePayload(BaseModel):
    results: List[SearchHitPayload] = Field(default_factory=list)


class DelinkResultPayload(BaseModel):
    links_removed: int = 0
    files_changed: int = 0


class TocResultPayload(BaseModel):
    entries: int = 0


# ---------------------------------------------------------------------------
# Project payloads
# ---------------------------------------------------------------------------


class ProjectInfoPayload(BaseModel):
    root: str
    glossary_dir: str
    strict: bool = False


class OpenProjectRequest(BaseModel):
    path: str


class InitProjectRequest(BaseModel):
    path: str
    glossary_dir: str = "glossary"
