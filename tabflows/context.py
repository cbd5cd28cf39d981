"""
Per-document storage state.

``StorageContext`` bundles the active document paths with the two registries
that survive between load and save cycles. It is owned by
``LocalFilesystemStorage`` and handed to the assembler and the partitioner on
every call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .backup import backup_path_for
from .file_registry import FileRegistry
from .tabless import TablessRegistry

FLOWS_DIRNAME = "flows"


@dataclass
class DocumentPaths:
    """Files that make up the active document."""

    flow_file: Path
    flow_file_backup: Path
    credentials_file: Path
    credentials_file_backup: Path
    flows_root: Optional[Path] = None

    @classmethod
    def for_flow_file(
        cls, flow_file: Path, user_dir: Optional[Path] = None
    ) -> "DocumentPaths":
        """Derive backup, credentials and per-tab root from the flow file.

        ``flows_cred.json`` sits beside ``flows.json``; per-tab files live
        under ``<user_dir>/flows`` when a user dir is configured.
        """
        flow_file = Path(flow_file)
        credentials_file = flow_file.with_name(
            f"{flow_file.stem}_cred{flow_file.suffix}"
        )
        flows_root = (Path(user_dir) / FLOWS_DIRNAME).resolve() if user_dir else None
        return cls(
            flow_file=flow_file,
            flow_file_backup=backup_path_for(flow_file),
            credentials_file=credentials_file,
            credentials_file_backup=backup_path_for(credentials_file),
            flows_root=flows_root,
        )


@dataclass
class StorageContext:
    """Mutable state shared by one document's loads and saves."""

    paths: DocumentPaths
    tabless: TablessRegistry = field(default_factory=TablessRegistry)
    files: FileRegistry = field(default_factory=FileRegistry)
    pretty: bool = False
    sort_flows: bool = False

    def refresh_files(self):
        """Rescan the per-tab root and return the discovered paths."""
        return self.files.refresh(self.paths.flows_root)
