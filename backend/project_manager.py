"""Project management for Glosslink.

A "project" is any directory containing a `.glosslink/config.json` file. The
config names the glossary directory, the ignore list and directories to skip
while walking the corpus.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from errors import ConfigError, ProjectNotFoundError
from term_store import TOC_FILENAME, TOC_HEADER

logger = logging.getLogger(__name__)

CONFIG_DIRNAME = ".glosslink"
CONFIG_FILENAME = "config.json"
CONFIG_SCHEMA = 1

DEFAULT_CONFIG: Dict = {
    "schema": CONFIG_SCHEMA,
    "glossaryDir": "glossary",
    "ignoreFile": "ignore.txt",
    "excludeDirs": [],
    "strict": False,
}


def env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class ProjectInfo:
    root: Path
    glossary_dir: Path
    ignore_path: Path
    exclude_dirs: Tuple[str, ...] = field(default_factory=tuple)
    strict: bool = False

    @property
    def config_dir(self) -> Path:
        return self.root / CONFIG_DIRNAME

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def toc_path(self) -> Path:
        return self.glossary_dir / TOC_FILENAME


class ProjectManager:
    """Locates, loads and initialises Glosslink projects."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def find_root(self, start: Optional[Path] = None) -> Optional[Path]:
        """Walk up from ``start`` to the nearest directory holding `.glosslink/`."""
        current = Path(start or os.getcwd()).expanduser().resolve()
        for candidate in (current, *current.parents):
            if (candidate / CONFIG_DIRNAME / CONFIG_FILENAME).is_file():
                return candidate
        return None

    def load(self, start: Optional[Path] = None) -> ProjectInfo:
        root = self.find_root(start)
        if root is None:
            raise ProjectNotFoundError(
                f"No glosslink project found at or above {start or os.getcwd()} (run `glosslink init`)"
            )
        config = self._read_config(root / CONFIG_DIRNAME / CONFIG_FILENAME)
        return self._project_from_config(root, config)

    def init(self, path: Optional[Path] = None, *, glossary_dir: str = "glossary") -> ProjectInfo:
        target = Path(path or os.getcwd()).expanduser().resolve()
        existing = self.find_root(target)
        if existing is not None:
            raise ConfigError(f"A glosslink project already exists at {existing}")

        config = dict(DEFAULT_CONFIG)
        config["glossaryDir"] = glossary_dir or DEFAULT_CONFIG["glossaryDir"]
        (target / CONFIG_DIRNAME).mkdir(parents=True, exist_ok=True)
        with open(target / CONFIG_DIRNAME / CONFIG_FILENAME, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
            f.write("\n")

        project = self._project_from_config(target, config)
        self.ensure_layout(project)
        logger.info("Initialised glosslink project at %s", target)
        return project

    def ensure_layout(self, project: ProjectInfo) -> ProjectInfo:
        project.glossary_dir.mkdir(parents=True, exist_ok=True)
        if not project.toc_path.exists():
            project.toc_path.write_text(TOC_HEADER, encoding="utf-8")
        return project

    # ------------------------------------------------------------------
    # Ignore list
    # ------------------------------------------------------------------
    def read_ignore(self, project: ProjectInfo) -> List[str]:
        if not project.ignore_path.exists():
            return []
        words = project.ignore_path.read_text(encoding="utf-8").split()
        return sorted({word.strip().lower() for word in words if word.strip()})

    def add_ignored(self, project: ProjectInfo, words: Iterable[str]) -> Tuple[int, int]:
        """Merge ``words`` into the ignore list. Returns (added, total)."""
        current = set(self.read_ignore(project))
        incoming = {word.strip().lower() for word in words if word and word.strip()}
        added = incoming - current
        merged = sorted(current | incoming)
        project.ignore_path.parent.mkdir(parents=True, exist_ok=True)
        project.ignore_path.write_text("\n".join(merged) + ("\n" if merged else ""), encoding="utf-8")
        return len(added), len(merged)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _read_config(self, path: Path) -> Dict:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Unreadable config {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a JSON object")
        merged = dict(DEFAULT_CONFIG)
        merged.update(data)
        return merged

    def _project_from_config(self, root: Path, config: Dict) -> ProjectInfo:
        glossary = str(config.get("glossaryDir") or DEFAULT_CONFIG["glossaryDir"])
        ignore = str(config.get("ignoreFile") or DEFAULT_CONFIG["ignoreFile"])
        exclude = config.get("excludeDirs") or []
        if not isinstance(exclude, list):
            raise ConfigError("excludeDirs must be a list of directory names")
        strict = env_flag("GLOSSLINK_STRICT", bool(config.get("strict", False)))
        return ProjectInfo(
            root=root,
            glossary_dir=(root / glossary).resolve(),
            ignore_path=root / CONFIG_DIRNAME / ignore,
            exclude_dirs=tuple(str(name) for name in exclude),
            strict=bool(strict),
        )
