"""Backend application state for the currently-open glossary project."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Optional

from project_manager import ProjectInfo, ProjectManager
from services import GlossaryService


class GlosslinkAppState:
    """Holds the open project and its service.

    The project is resolved on first use from ``GLOSSLINK_PROJECT_ROOT`` (or
    the working directory), so the app can start before a project exists.
    """

    def __init__(self, project_manager: Optional[ProjectManager] = None, start: Optional[Path] = None):
        self._lock = threading.RLock()
        self.project_manager = project_manager or ProjectManager()
        self._start = start
        self._service: Optional[GlossaryService] = None

    def current(self) -> GlossaryService:
        with self._lock:
            if self._service is None:
                start = self._start or os.environ.get("GLOSSLINK_PROJECT_ROOT") or os.getcwd()
                self._load_project(self.project_manager.load(Path(start)))
            assert self._service is not None
            return self._service

    def open_project(self, path: str) -> GlossaryService:
        project = self.project_manager.load(Path(path))
        with self._lock:
            self._load_project(project)
            assert self._service is not None
            return self._service

    def init_project(self, path: str, glossary_dir: str = "glossary") -> GlossaryService:
        project = self.project_manager.init(Path(path), glossary_dir=glossary_dir)
        with self._lock:
            self._load_project(project)
            assert self._service is not None
            return self._service

    def _load_project(self, project: ProjectInfo) -> None:
        project = self.project_manager.ensure_layout(project)
        self._service = GlossaryService(project, project_manager=self.project_manager)
