"""
Backup-guarded reads and writes of single JSON files.

Every primary file has a hidden sibling ``.<basename>.backup`` that holds the
previous contents. A write copies the current primary there before replacing
it; a read falls back to the backup when the primary cannot be used.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

PRIMARY = "primary"
BACKUP = "backup"
DEFAULT = "default"


def backup_path_for(path: Union[str, Path]) -> Path:
    """Return the hidden backup sibling of ``path``."""
    path = Path(path)
    return path.parent / f".{path.name}.backup"


@dataclass
class ReadResult:
    """Outcome of a backup-guarded read."""

    value: Any
    used_default: bool = False
    source: str = PRIMARY
    error: Optional[str] = None


def _load_json(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise ValueError(f"{path} is empty")
    return json.loads(text)


class BackupWriter:
    """Reads and writes JSON files with a one-deep backup."""

    def __init__(self, fsync: bool = True):
        self._fsync = fsync

    # =========================================================================
    # Writing
    # =========================================================================

    def _backup(self, path: Path, backup_path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.copy2(path, backup_path)
            logger.debug("Created backup: %s", backup_path)
        except OSError as e:
            logger.warning("Could not back up %s: %s", path, e)

    def write_sync(
        self,
        path: Union[str, Path],
        content: str,
        backup_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        path = Path(path)
        backup = Path(backup_path) if backup_path else backup_path_for(path)

        path.parent.mkdir(parents=True, exist_ok=True)
        self._backup(path, backup)

        # Temp file in the same directory so the rename stays on one filesystem
        fd, tmp_path = tempfile.mkstemp(
            suffix=".tmp",
            prefix=f".{path.name}_",
            dir=path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                if self._fsync:
                    os.fsync(f.fileno())
            os.replace(tmp_path, path)
            logger.debug("Atomic write complete: %s", path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        return path

    async def write(
        self,
        path: Union[str, Path],
        content: str,
        backup_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        """Back up the current primary, then atomically replace it."""
        return await asyncio.to_thread(self.write_sync, path, content, backup_path)

    # =========================================================================
    # Reading
    # =========================================================================

    def _restore(self, backup_path: Path, path: Path) -> None:
        try:
            shutil.copy2(backup_path, path)
            logger.warning("Restored %s from backup %s", path, backup_path)
        except OSError as e:
            logger.warning("Could not restore %s from backup: %s", path, e)

    def read_sync(
        self,
        path: Union[str, Path],
        backup_path: Optional[Union[str, Path]] = None,
        default: Any = None,
    ) -> ReadResult:
        path = Path(path)
        backup = Path(backup_path) if backup_path else backup_path_for(path)

        try:
            return ReadResult(value=_load_json(path))
        except FileNotFoundError:
            primary_error = f"{path} does not exist"
        except (OSError, ValueError) as e:
            primary_error = str(e)
            logger.warning("Cannot read %s: %s", path, e)

        if backup.exists():
            try:
                value = _load_json(backup)
            except (OSError, ValueError) as e:
                logger.warning("Cannot read backup %s: %s", backup, e)
            else:
                self._restore(backup, path)
                return ReadResult(value=value, source=BACKUP, error=primary_error)

        logger.debug("Using default content for %s", path)
        return ReadResult(
            value=default, used_default=True, source=DEFAULT, error=primary_error
        )

    async def read(
        self,
        path: Union[str, Path],
        backup_path: Optional[Union[str, Path]] = None,
        default: Any = None,
    ) -> ReadResult:
        """Read JSON from ``path``, falling back to its backup, then ``default``."""
        return await asyncio.to_thread(self.read_sync, path, backup_path, default)
