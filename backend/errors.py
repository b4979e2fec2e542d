"""Exception types raised by the glossary engine."""

from __future__ import annotations


class GlosslinkError(Exception):
    """Base class for every error the engine raises on purpose."""


class ProjectNotFoundError(GlosslinkError, FileNotFoundError):
    """No `.glosslink/` project encloses the requested directory."""


class ConfigError(GlosslinkError, ValueError):
    pass


class MalformedEntryError(GlosslinkError, ValueError):
    """A glossary document carries an entry block that does not parse."""

    def __init__(self, path, reason: str):
        super().__init__(f"Malformed glossary entry in {path}: {reason}")
        self.path = path
        self.reason = reason


class SpellingCollisionError(GlosslinkError, ValueError):
    """Two terms claim the same spelling."""

    def __init__(self, spelling: str, owner: str, claimant: str):
        super().__init__(
            f'Spelling "{spelling}" of "{claimant}" is already used by "{owner}"'
        )
        self.spelling = spelling
        self.owner = owner
        self.claimant = claimant


class TermNotFoundError(GlosslinkError, KeyError):
    def __str__(self) -> str:
        return f"Glossary term not found: {self.args[0]}" if self.args else "Glossary term not found"


class TermExistsError(GlosslinkError, FileExistsError):
    pass
