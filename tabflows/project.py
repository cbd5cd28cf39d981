"""
Interface to the version-controlled project collaborator.

Project lifecycle (create, commit, branch, merge, push/pull) lives outside
this package. Storage only needs to know where a project keeps its flow and
credentials files and whether its state allows loading or saving.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol

from .errors import (
    GIT_MERGE_CONFLICT,
    MISSING_FLOW_FILE,
    MISSING_PACKAGE_FILE,
    PROJECT_EMPTY,
    FlowStorageError,
)

logger = logging.getLogger(__name__)

PACKAGE_FILE = "package.json"


class Project(Protocol):
    """What storage reads from an active project."""

    name: str
    missing_files: Optional[Iterable[str]]

    def get_flow_file(self) -> Optional[str]: ...

    def get_flow_file_backup(self) -> Optional[str]: ...

    def get_credentials_file(self) -> Optional[str]: ...

    def get_credentials_file_backup(self) -> Optional[str]: ...

    def is_merging(self) -> bool: ...

    def is_empty(self) -> bool: ...


class ProjectBackend(Protocol):
    """Loads and deletes projects by path."""

    async def load(self, path: Path) -> Project: ...

    async def delete(self, path: Path) -> None: ...


def check_load_allowed(project: Optional[Project]) -> None:
    """Raise before any I/O if the active project cannot be loaded."""
    if project is None:
        return

    if project.is_empty():
        logger.warning("Project repository is empty")
        raise FlowStorageError(PROJECT_EMPTY, "Project repository is empty")

    missing = project.missing_files or ()
    if PACKAGE_FILE in missing:
        logger.warning("Project missing %s", PACKAGE_FILE)
        raise FlowStorageError(MISSING_PACKAGE_FILE, f"Project missing {PACKAGE_FILE}")

    if not project.get_flow_file():
        logger.warning("Project has no flow file")
        raise FlowStorageError(MISSING_FLOW_FILE, "Project has no flow file")

    if project.is_merging():
        logger.warning("Project has unmerged changes")
        raise FlowStorageError(
            GIT_MERGE_CONFLICT, "Project has unmerged changes. Cannot load flows"
        )


def check_save_allowed(project: Optional[Project]) -> None:
    """Raise before any I/O if the active project is mid-merge."""
    if project is not None and project.is_merging():
        logger.warning("Project has unmerged changes")
        raise FlowStorageError(
            GIT_MERGE_CONFLICT, "Project has unmerged changes. Cannot deploy new flows"
        )
