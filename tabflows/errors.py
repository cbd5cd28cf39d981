"""
Error types for flow storage.

Errors are identified by a string ``code`` rather than by subclass, so callers
(the runtime, the HTTP layer) can forward the code unchanged.
"""

from __future__ import annotations

from typing import Optional

PROJECT_EMPTY = "project_empty"
MISSING_PACKAGE_FILE = "missing_package_file"
MISSING_FLOW_FILE = "missing_flow_file"
GIT_MERGE_CONFLICT = "git_merge_conflict"
CANNOT_DELETE_ACTIVE_PROJECT = "cannot_delete_active_project"

ERROR_CODES = frozenset(
    {
        PROJECT_EMPTY,
        MISSING_PACKAGE_FILE,
        MISSING_FLOW_FILE,
        GIT_MERGE_CONFLICT,
        CANNOT_DELETE_ACTIVE_PROJECT,
    }
)


class FlowStorageError(Exception):
    """Raised when a load, save or project operation is refused."""

    def __init__(self, code: str, message: Optional[str] = None):
        if code not in ERROR_CODES:
            raise ValueError(f"Unknown flow storage error code: {code!r}")
        self.code = code
        self.message = message or code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}
