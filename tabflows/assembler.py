"""
Load path: rebuild one flat document from the primary flow file and every
per-tab file.

Tabless nodes are always serialized after a tab's own content, so each file's
tail is peeled off backwards and handed to the tabless registry. The
registry's reconciled copies are appended once at the end, which keeps a
shared config node from appearing once per file that carried it.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .backup import BackupWriter, ReadResult, backup_path_for
from .context import StorageContext
from .nodes import Node, is_node, is_tabless
from .project import Project, check_load_allowed
from .tabless import TablessRegistry

logger = logging.getLogger(__name__)


def strip_tabless_tail(nodes: List[Any], registry: TablessRegistry) -> List[Node]:
    """Remove trailing tabless nodes from ``nodes`` into ``registry``.

    Scanning stops at the first tab/subflow or ``z``-bearing node; anything
    before it is left in place. Trailing values that are not node objects
    are dropped.
    """
    while nodes:
        last = nodes[-1]
        if not is_node(last):
            nodes.pop()
        elif is_tabless(last):
            registry.ingest(nodes.pop())
        else:
            break
    return nodes


class FlowAssembler:
    """Reassembles the document held in a ``StorageContext``."""

    def __init__(self, writer: Optional[BackupWriter] = None):
        self._writer = writer or BackupWriter()

    async def _read_all(self, ctx: StorageContext) -> List[Tuple[Path, ReadResult]]:
        sources: List[Tuple[Path, Path]] = [
            (ctx.paths.flow_file, ctx.paths.flow_file_backup)
        ]
        sources.extend((path, backup_path_for(path)) for path in ctx.files)

        results = await asyncio.gather(
            *(self._writer.read(path, backup, default=[]) for path, backup in sources),
            return_exceptions=True,
        )

        settled: List[Tuple[Path, ReadResult]] = []
        for (path, _), result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to read %s: %s", path, result)
                result = ReadResult(value=[], used_default=True, error=str(result))
            settled.append((path, result))
        return settled

    async def assemble(
        self, ctx: StorageContext, project: Optional[Project] = None
    ) -> List[Node]:
        """Return the full document: file bodies first, then tabless nodes."""
        check_load_allowed(project)

        ctx.refresh_files()
        logger.info("Flows files:")
        logger.info("  - %s", ctx.paths.flow_file)
        for path in ctx.files:
            logger.info("  - %s", path)

        flows: List[Node] = []
        for path, result in await self._read_all(ctx):
            value = result.value
            if not isinstance(value, list):
                logger.warning("Ignoring %s: expected a JSON array of nodes", path)
                continue
            flows.extend(strip_tabless_tail(list(value), ctx.tabless))

        flows.extend(dict(node) for node in ctx.tabless.values())
        logger.debug(
            "Assembled %d nodes (%d tabless) from %d files",
            len(flows),
            len(ctx.tabless),
            len(ctx.files) + 1,
        )
        return flows
