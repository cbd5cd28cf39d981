"""
Settings for one-file-per-tab flow storage.

Settings come from a dictionary or a YAML file. Environment variables take
precedence over file values for the user directory and the broker password.

Example YAML configuration:
    user_dir: ~/.tabflows
    flow_file: flows.json
    flow_file_pretty: true
    sort_flows: true
    mirror:
      broker: localhost
      port: 1883
      subscribe_topic: flows/refresh
      publish_topic:
        - flows/document
        - backup/flows

Example usage:
    from tabflows.config import load_settings

    settings = load_settings("tabflows.yaml")
    paths = settings.document_paths()
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .context import DocumentPaths
from .mirror import MirrorSettings

ENV_USER_DIR = "TABFLOWS_USER_DIR"
ENV_MQTT_PASSWORD = "TABFLOWS_MQTT_PASSWORD"

DEFAULT_USER_DIR = Path("~") / ".tabflows"
PROJECTS_DIRNAME = "projects"


def _is_absolute(flow_file: str) -> bool:
    # Unix "/..." and Windows "C:..." both count
    return flow_file.startswith("/") or (len(flow_file) > 1 and flow_file[1] == ":")


def resolve_flow_file(
    flow_file: Optional[str],
    user_dir: Path,
    cwd: Optional[Path] = None,
    hostname: Optional[str] = None,
) -> Path:
    """Work out where the primary flow file lives.

    - absolute paths are used as is
    - ``./name`` is relative to the working directory
    - a bare name is used from the working directory if it exists there,
      otherwise from ``user_dir``
    - no name means ``flows_<hostname>.json`` in ``user_dir``
    """
    cwd = cwd or Path.cwd()
    if not flow_file:
        return user_dir / f"flows_{hostname or socket.gethostname()}.json"
    if _is_absolute(flow_file):
        return Path(flow_file)
    if flow_file.startswith("./"):
        return cwd / flow_file[2:]
    if (cwd / flow_file).exists():
        return cwd / flow_file
    return user_dir / flow_file


@dataclass
class StorageSettings:
    """
    Configuration for ``LocalFilesystemStorage``.

    Attributes:
        user_dir: Root for the primary flow file and the ``flows/`` per-tab tree
        flow_file: Primary flow file name or path (see ``resolve_flow_file``)
        flow_file_pretty: Indent saved files by four spaces
        read_only: Turn every save into a no-op
        sort_flows: Sort nodes inside each per-tab file for stable diffs
        projects_enabled: Look for projects under ``<user_dir>/projects``
        active_project: Project to load on first access
        mirror: MQTT mirroring settings
    """

    user_dir: Path = field(default_factory=lambda: DEFAULT_USER_DIR.expanduser())
    flow_file: Optional[str] = None
    flow_file_pretty: bool = False
    read_only: bool = False
    sort_flows: bool = False
    projects_enabled: bool = False
    active_project: Optional[str] = None
    mirror: MirrorSettings = field(default_factory=MirrorSettings)

    @property
    def projects_dir(self) -> Path:
        return self.user_dir / PROJECTS_DIRNAME

    def flow_file_path(self, cwd: Optional[Path] = None) -> Path:
        return resolve_flow_file(self.flow_file, self.user_dir, cwd=cwd)

    def document_paths(self, cwd: Optional[Path] = None) -> DocumentPaths:
        return DocumentPaths.for_flow_file(self.flow_file_path(cwd), self.user_dir)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageSettings":
        """
        Create settings from a dictionary.

        Args:
            data: Settings dictionary

        Returns:
            StorageSettings instance
        """
        user_dir = os.environ.get(ENV_USER_DIR) or data.get("user_dir")
        mirror_data = data.get("mirror")
        mirror = MirrorSettings.from_dict(mirror_data)
        password = os.environ.get(ENV_MQTT_PASSWORD)
        if password is not None:
            mirror.password = password

        return cls(
            user_dir=Path(user_dir).expanduser() if user_dir else DEFAULT_USER_DIR.expanduser(),
            flow_file=data.get("flow_file"),
            flow_file_pretty=bool(data.get("flow_file_pretty", False)),
            read_only=bool(data.get("read_only", False)),
            sort_flows=bool(data.get("sort_flows", False)),
            projects_enabled=bool(data.get("projects_enabled", False)),
            active_project=data.get("active_project"),
            mirror=mirror,
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "StorageSettings":
        """
        Load settings from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the YAML is not a mapping
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        return cls.from_dict(data)


def load_settings(source: Union[str, Path, Dict[str, Any], None] = None) -> StorageSettings:
    """Load settings from a YAML path, a dictionary, or defaults."""
    if source is None:
        return StorageSettings.from_dict({})
    if isinstance(source, dict):
        return StorageSettings.from_dict(source)
    return StorageSettings.from_yaml(source)
