"""
tabflows: store a flow document as one JSON file per tab.

A flow document is a flat list of nodes. Tabs and subflows group their
members through the ``z`` field; nodes with no tab (shared config) are
reconciled by timestamp and copied into every tab file that references them.

Quick Start:
    from tabflows import LocalFilesystemStorage, load_settings

    storage = LocalFilesystemStorage(load_settings({"user_dir": "/data"}))
    await storage.init()
    flows = await storage.get_flows()
    await storage.save_flows(flows)

Layout on disk:
    <user_dir>/flows_<host>.json                 primary flow file (read only)
    <user_dir>/flows/<tab name>/<tab id>.flows.json
    <user_dir>/flows/<tab name>/.<tab id>.flows.json.backup
"""

__version__ = "0.1.0"

from .assembler import FlowAssembler, strip_tabless_tail
from .backup import BackupWriter, ReadResult, backup_path_for
from .config import StorageSettings, load_settings, resolve_flow_file
from .context import DocumentPaths, StorageContext
from .errors import (
    CANNOT_DELETE_ACTIVE_PROJECT,
    GIT_MERGE_CONFLICT,
    MISSING_FLOW_FILE,
    MISSING_PACKAGE_FILE,
    PROJECT_EMPTY,
    FlowStorageError,
)
from .file_registry import FileRegistry, discover
from .mirror import DocumentMirror, MirrorSettings, MqttTransport
from .partitioner import FlowPartitioner, SaveResult, TabBucket, partition
from .storage import LocalFilesystemStorage
from .tabless import TablessRegistry

__all__ = [
    "__version__",
    # Storage
    "LocalFilesystemStorage",
    "StorageSettings",
    "load_settings",
    "resolve_flow_file",
    "DocumentPaths",
    "StorageContext",
    # Engine
    "FlowAssembler",
    "FlowPartitioner",
    "SaveResult",
    "TabBucket",
    "partition",
    "strip_tabless_tail",
    "TablessRegistry",
    "FileRegistry",
    "discover",
    "BackupWriter",
    "ReadResult",
    "backup_path_for",
    # Mirror
    "DocumentMirror",
    "MirrorSettings",
    "MqttTransport",
    # Errors
    "FlowStorageError",
    "PROJECT_EMPTY",
    "MISSING_PACKAGE_FILE",
    "MISSING_FLOW_FILE",
    "GIT_MERGE_CONFLICT",
    "CANNOT_DELETE_ACTIVE_PROJECT",
]
