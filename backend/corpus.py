"""Corpus traversal and document I/O."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        ".vitepress",
        ".glosslink",
        "__pycache__",
        ".venv",
        "venv",
    }
)


def iter_markdown_files(
    root: Path,
    *,
    exclude_dirs: Iterable[str] = (),
    skip_paths: Iterable[Path] = (),
) -> Iterator[Path]:
    """Yield every ``*.md`` file under ``root`` in sorted directory order.

    Directories named in ``exclude_dirs`` (or the defaults) and the
    directories listed in ``skip_paths`` are not entered.
    """
    excluded = DEFAULT_EXCLUDED_DIRS | frozenset(exclude_dirs)
    skipped = {os.path.normpath(str(path)) for path in skip_paths}

    def walk(directory: Path) -> Iterator[Path]:
        with os.scandir(directory) as scan:
            entries = sorted(scan, key=lambda entry: entry.name)
        for entry in entries:
            path = directory / entry.name
            if entry.is_dir():
                if entry.name in excluded or os.path.normpath(str(path)) in skipped:
                    continue
                yield from walk(path)
            elif entry.is_file() and entry.name.endswith(".md"):
                yield path

    yield from walk(Path(root))


def page_name(root: Path, path: Path) -> str:
    """Project-relative POSIX path used in mention lists."""
    return Path(os.path.relpath(path, root)).as_posix()


def read_document(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def write_document(path: Path, content: str, original: Optional[str] = None) -> bool:
    """Write ``content`` unless it equals ``original``. Returns whether it wrote."""
    if original is not None and content == original:
        return False
    Path(path).write_text(content, encoding="utf-8")
    logger.debug("Wrote %s", path)
    return True
