"""
Discovery of per-tab flow files.

The registry is a snapshot of every ``*.flows.json`` file found under the
per-tab root. It is refreshed by a directory scan at the start of each load
and each save; the partitioner compares it with what it rewrote to find
stale files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Union

from .nodes import FLOWS_SUFFIX

logger = logging.getLogger(__name__)


def absolute_path(path: Union[str, Path]) -> Path:
    """Absolute, normalized form of ``path`` without following symlinks."""
    return Path(os.path.abspath(path))


def discover(root: Union[str, Path]) -> List[Path]:
    """Recursively list per-tab files under ``root`` in deterministic order.

    Entries are sorted case-sensitively at every directory level and
    directories are descended in that same order. A missing or unreadable
    root yields an empty list; unreadable subdirectories and symlink loops
    are skipped.
    """
    found: List[Path] = []
    _walk(Path(root), found, set())
    return found


def _walk(directory: Path, found: List[Path], visited: Set[str]) -> None:
    try:
        real = os.path.realpath(directory)
        if real in visited:
            logger.debug("Skipping already visited directory: %s", directory)
            return
        visited.add(real)
        names = sorted(os.listdir(directory))
    except OSError as e:
        logger.debug("Cannot list %s: %s", directory, e)
        return

    for name in names:
        path = directory / name
        try:
            if path.is_file():
                if name.endswith(FLOWS_SUFFIX):
                    found.append(absolute_path(path))
            elif path.is_dir():
                _walk(path, found, visited)
        except OSError as e:
            logger.debug("Cannot stat %s: %s", path, e)


class FileRegistry:
    """Known per-tab file paths, kept in discovery order."""

    def __init__(self) -> None:
        self._paths: Dict[Path, bool] = {}

    def refresh(self, root: Optional[Union[str, Path]]) -> List[Path]:
        """Replace the registry contents with a fresh scan of ``root``."""
        self._paths = {}
        if root is not None:
            for path in discover(root):
                self._paths[path] = True
        return self.paths

    def add(self, path: Union[str, Path]) -> None:
        self._paths.setdefault(absolute_path(path), True)

    def discard(self, path: Union[str, Path]) -> None:
        self._paths.pop(absolute_path(path), None)

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return absolute_path(path) in self._paths

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._paths))

    def __len__(self) -> int:
        return len(self._paths)
