"""Shared fixtures for tabflows tests."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from tabflows import LocalFilesystemStorage, StorageSettings, load_settings


# ============================================================================
# Fakes
# ============================================================================


@dataclass
class FakeProject:
    """In-memory stand-in for a version-controlled project."""

    name: str
    flow_file: Optional[str] = None
    credentials_file: Optional[str] = None
    merging: bool = False
    empty: bool = False
    missing_files: List[str] = field(default_factory=list)

    def get_flow_file(self):
        return self.flow_file

    def get_flow_file_backup(self):
        return None

    def get_credentials_file(self):
        return self.credentials_file

    def get_credentials_file_backup(self):
        return None

    def is_merging(self):
        return self.merging

    def is_empty(self):
        return self.empty


class FakeProjectBackend:
    """Hands out pre-registered projects and records deletions."""

    def __init__(self, *projects: FakeProject):
        self.projects = {p.name: p for p in projects}
        self.deleted: List[Path] = []

    async def load(self, path: Path) -> FakeProject:
        return self.projects[Path(path).name]

    async def delete(self, path: Path) -> None:
        self.deleted.append(Path(path))


class FakeTransport:
    """Records subscriptions and publications instead of talking to a broker."""

    def __init__(self, auto_connect: bool = True):
        self.auto_connect = auto_connect
        self.subscribed: List[str] = []
        self.published: List[Tuple[str, str]] = []
        self.connected = False
        self.disconnected = False
        self.on_connect = None
        self.on_message = None

    def set_handlers(self, on_connect, on_message):
        self.on_connect = on_connect
        self.on_message = on_message

    def connect(self):
        self.connected = True
        if self.auto_connect:
            self.on_connect()

    def subscribe(self, topic):
        self.subscribed.append(topic)

    def publish(self, topic, payload):
        self.published.append((topic, payload))

    def disconnect(self):
        self.disconnected = True


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def user_dir(tmp_path):
    path = tmp_path / "userdir"
    path.mkdir()
    return path


@pytest.fixture
def flows_root(user_dir):
    return (user_dir / "flows").resolve()


@pytest.fixture
def settings(user_dir) -> StorageSettings:
    return load_settings({"user_dir": str(user_dir), "flow_file": str(user_dir / "flows.json")})


@pytest.fixture
def storage(settings) -> LocalFilesystemStorage:
    return LocalFilesystemStorage(settings)


def write_json(path: Path, value) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(value), encoding="utf-8")
    return path


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def tab_files(root: Path) -> List[Path]:
    return sorted(root.rglob("*.flows.json"))


def by_id(nodes):
    return {n["id"]: n for n in nodes}
