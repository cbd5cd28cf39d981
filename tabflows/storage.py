"""
Runtime-facing flow storage that keeps one file per tab.

``LocalFilesystemStorage`` owns the active document's ``StorageContext`` and
serializes every load and save through a single asyncio lock: the registries
it holds are only consistent if no two cycles interleave.

Usage:
    settings = load_settings("tabflows.yaml")
    storage = LocalFilesystemStorage(settings)
    await storage.init()

    flows = await storage.get_flows()
    flows.append({"id": "n2", "type": "debug", "z": "t1"})
    result = await storage.save_flows(flows)

    await storage.close()
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .assembler import FlowAssembler
from .backup import BackupWriter
from .config import StorageSettings
from .context import DocumentPaths, StorageContext
from .errors import CANNOT_DELETE_ACTIVE_PROJECT, FlowStorageError
from .mirror import DocumentMirror, MirrorTransport
from .nodes import Node, to_json
from .partitioner import FlowPartitioner, SaveResult
from .project import Project, ProjectBackend

logger = logging.getLogger(__name__)


class LocalFilesystemStorage:
    """Loads and saves a flow document as per-tab files under ``user_dir``."""

    def __init__(
        self,
        settings: StorageSettings,
        project_backend: Optional[ProjectBackend] = None,
        mirror_transport: Optional[MirrorTransport] = None,
        writer: Optional[BackupWriter] = None,
    ):
        self._settings = settings
        self._projects = project_backend
        self._writer = writer or BackupWriter()
        self._assembler = FlowAssembler(self._writer)
        self._partitioner = FlowPartitioner(self._writer)
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

        self._ctx = StorageContext(
            paths=settings.document_paths(),
            pretty=settings.flow_file_pretty,
            sort_flows=settings.sort_flows,
        )
        self._active_project: Optional[Project] = None
        self._pending_project: Optional[str] = (
            settings.active_project if settings.projects_enabled else None
        )
        self._initial_load_complete = False
        self._flow_file_exists = False

        self._mirror: Optional[DocumentMirror] = None
        if settings.mirror.enabled:
            self._mirror = DocumentMirror(
                settings.mirror, reload=self.get_flows, transport=mirror_transport
            )

        logger.debug(
            "LocalFilesystemStorage initialized: user_dir=%s, flow_file=%s, mirror=%s",
            settings.user_dir,
            self._ctx.paths.flow_file,
            bool(self._mirror),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the single-writer lock for the running event loop."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    @property
    def settings(self) -> StorageSettings:
        return self._settings

    @property
    def context(self) -> StorageContext:
        return self._ctx

    @property
    def mirror(self) -> Optional[DocumentMirror]:
        return self._mirror

    @property
    def flow_file_exists(self) -> bool:
        return self._flow_file_exists

    async def init(self) -> None:
        """Scan for per-tab files and connect the mirror if configured."""
        self._ctx.refresh_files()
        logger.info("User directory: %s", self._settings.user_dir)
        logger.info("Found %d per-tab flow file(s)", len(self._ctx.files))
        if self._settings.projects_enabled and not self._settings.read_only:
            self._settings.projects_dir.mkdir(parents=True, exist_ok=True)
        if self._mirror is not None:
            self._mirror.start()

    async def close(self) -> None:
        if self._mirror is not None:
            self._mirror.stop()

    # =========================================================================
    # Flows
    # =========================================================================

    async def _initial_load(self) -> None:
        self._initial_load_complete = True
        if self._pending_project:
            name, self._pending_project = self._pending_project, None
            await self._load_project(name)
            logger.info("Flows from project %s", name)
        elif self._settings.projects_enabled:
            logger.warning("No active project: using files from the user directory")

    async def get_flows(self) -> List[Node]:
        """Assemble the document from the flow file and every per-tab file."""
        async with self._get_lock():
            if not self._initial_load_complete:
                await self._initial_load()
            flows = await self._assembler.assemble(self._ctx, self._active_project)
            self._flow_file_exists = True
            return flows

    async def save_flows(self, flows: List[Node]) -> SaveResult:
        """Partition ``flows`` into per-tab files, then mirror the document."""
        if self._settings.read_only:
            return SaveResult(skipped=True)

        async with self._get_lock():
            result = await self._partitioner.save(self._ctx, flows, self._active_project)
            self._flow_file_exists = True

        if self._mirror is not None:
            self._mirror.publish(flows)
        return result

    # =========================================================================
    # Credentials
    # =========================================================================

    async def get_credentials(self) -> Dict[str, Any]:
        result = await self._writer.read(
            self._ctx.paths.credentials_file,
            self._ctx.paths.credentials_file_backup,
            default={},
        )
        return result.value

    async def save_credentials(self, credentials: Dict[str, Any]) -> None:
        if self._settings.read_only:
            return
        await self._writer.write(
            self._ctx.paths.credentials_file,
            to_json(credentials, pretty=self._settings.flow_file_pretty),
            self._ctx.paths.credentials_file_backup,
        )

    def get_flow_filename(self) -> Optional[str]:
        if self._ctx.paths.flow_file:
            return self._ctx.paths.flow_file.name
        return None

    def get_credentials_filename(self) -> Optional[str]:
        if self._ctx.paths.flow_file:
            return self._ctx.paths.credentials_file.name
        return None

    # =========================================================================
    # Projects
    # =========================================================================

    def get_active_project(self) -> Optional[Project]:
        return self._active_project

    def _project_path(self, name: str) -> Path:
        if os.sep in name:
            return Path(name)
        return self._settings.projects_dir / name

    async def _load_project(self, name: str) -> Project:
        if self._projects is None:
            raise RuntimeError("No project backend configured")
        project = await self._projects.load(self._project_path(name))
        self._active_project = project
        self._ctx.paths = self._project_paths(project)
        logger.info("Active project: %s", project.name)
        logger.info("Flow file: %s", self._ctx.paths.flow_file)
        return project

    def _project_paths(self, project: Project) -> DocumentPaths:
        current = self._ctx.paths
        flow_file = project.get_flow_file()
        if not flow_file:
            # Keep the old targets; loading will refuse with missing_flow_file.
            return current
        paths = DocumentPaths.for_flow_file(Path(flow_file), self._settings.user_dir)
        if project.get_flow_file_backup():
            paths.flow_file_backup = Path(project.get_flow_file_backup())
        if project.get_credentials_file():
            paths.credentials_file = Path(project.get_credentials_file())
        if project.get_credentials_file_backup():
            paths.credentials_file_backup = Path(project.get_credentials_file_backup())
        return paths

    async def set_active_project(self, name: str) -> Project:
        """Load project ``name`` and point the document paths at its files."""
        async with self._get_lock():
            self._pending_project = None
            self._initial_load_complete = True
            return await self._load_project(name)

    def list_projects(self) -> List[str]:
        """Project directory names, sorted case-insensitively, hidden ones skipped."""
        try:
            names = os.listdir(self._settings.projects_dir)
        except OSError:
            return []
        return [
            name
            for name in sorted(names, key=str.lower)
            if not name.startswith(".")
            and (self._settings.projects_dir / name).is_dir()
            and not (self._settings.projects_dir / name).is_symlink()
        ]

    async def delete_project(self, name: str) -> None:
        if self._active_project is not None and self._active_project.name == name:
            raise FlowStorageError(
                CANNOT_DELETE_ACTIVE_PROJECT, "Can't delete the active project"
            )
        if self._projects is None:
            raise RuntimeError("No project backend configured")
        await self._projects.delete(self._settings.projects_dir / name)
