"""
Save path: split a flat document into one file per tab.

Every tab/subflow gets a bucket holding itself and its ``z`` members. Tabless
nodes go to the registry and are copied back into each bucket whose JSON
mentions their id. This textual match is a heuristic: coincidental substring
hits add a node to a file needlessly, and references that only exist through
a node not yet staged are picked up by at most two extra passes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from .backup import BackupWriter, backup_path_for
from .context import StorageContext
from .file_registry import absolute_path
from .nodes import (
    FLOWS_SUFFIX,
    Node,
    is_node,
    is_tab,
    is_tab_member,
    safe_folder_name,
    sort_bucket,
    tab_display_name,
    to_json,
)
from .project import Project, check_save_allowed
from .tabless import TablessRegistry, now_ms

logger = logging.getLogger(__name__)

REATTACH_EXTRA_PASSES = 2


@dataclass
class TabBucket:
    """Nodes destined for one per-tab file."""

    tab_id: str
    name: Optional[str] = None
    nodes: List[Node] = field(default_factory=list)

    @property
    def folder(self) -> str:
        return self.name or safe_folder_name(self.tab_id)

    def path_under(self, root: Path) -> Path:
        return root / self.folder / f"{self.tab_id}{FLOWS_SUFFIX}"


@dataclass
class SaveResult:
    """What a save cycle did on disk."""

    written: List[Path] = field(default_factory=list)
    failed: Dict[Path, str] = field(default_factory=dict)
    deleted: List[Path] = field(default_factory=list)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


def partition(
    document: List[Node],
    registry: TablessRegistry,
    timestamp: Optional[int] = None,
) -> Dict[str, TabBucket]:
    """Group ``document`` into tab buckets, feeding tabless nodes to ``registry``.

    Bucket order follows the first appearance of each tab id, whether that is
    the tab node itself or one of its members.
    """
    buckets: Dict[str, TabBucket] = {}
    stamp = timestamp if timestamp is not None else now_ms()

    for node in document:
        if not is_node(node):
            continue
        if is_tab(node):
            bucket = buckets.setdefault(node["id"], TabBucket(tab_id=node["id"]))
            bucket.name = tab_display_name(node)
            bucket.nodes.append(node)
        elif is_tab_member(node):
            z = node["z"]
            buckets.setdefault(z, TabBucket(tab_id=z)).nodes.append(node)
        else:
            candidate = dict(node)
            registry.stamp_if_changed(candidate, stamp)
            registry.ingest(candidate)
    return buckets


def reattach_tabless(
    bucket: TabBucket,
    registry: TablessRegistry,
    extra_passes: int = REATTACH_EXTRA_PASSES,
) -> List[str]:
    """Append registry nodes whose id occurs in the bucket's JSON.

    Returns the ids that were attached.
    """
    staged: List[Node] = []
    staged_ids: Set[str] = set()
    body = to_json(bucket.nodes)

    for _ in range(extra_passes + 1):
        text = body + to_json(staged)
        modified = False
        for node_id in registry.ids():
            if node_id not in staged_ids and node_id in text:
                staged.append(registry.get(node_id))
                staged_ids.add(node_id)
                modified = True
        if not modified:
            break

    bucket.nodes.extend(staged)
    return list(staged_ids)


def document_tabless_ids(document: List[Node]) -> List[str]:
    return [
        n["id"]
        for n in document
        if is_node(n) and n.get("id") and not is_tab(n) and not is_tab_member(n)
    ]


class FlowPartitioner:
    """Writes a document held in a ``StorageContext`` as per-tab files."""

    def __init__(self, writer: Optional[BackupWriter] = None):
        self._writer = writer or BackupWriter()

    def build_buckets(
        self, ctx: StorageContext, document: List[Node], timestamp: Optional[int] = None
    ) -> Dict[str, TabBucket]:
        """Partition, re-attach tabless nodes and optionally sort."""
        buckets = partition(document, ctx.tabless, timestamp)

        attached: Set[str] = set()
        for bucket in buckets.values():
            attached.update(reattach_tabless(bucket, ctx.tabless))

        orphans = [i for i in document_tabless_ids(document) if i not in attached]
        if orphans:
            if buckets:
                first = next(iter(buckets.values()))
                for node_id in dict.fromkeys(orphans):
                    first.nodes.append(ctx.tabless.get(node_id))
                logger.debug(
                    "Attached unreferenced tabless nodes %s to tab %s",
                    orphans,
                    first.tab_id,
                )
            else:
                logger.warning(
                    "No tab to hold tabless nodes %s; they are kept in memory only",
                    orphans,
                )

        if ctx.sort_flows:
            for bucket in buckets.values():
                bucket.nodes = sort_bucket(bucket.nodes)
        return buckets

    async def _write_buckets(
        self, ctx: StorageContext, buckets: Dict[str, TabBucket], result: SaveResult
    ) -> Set[Path]:
        root = ctx.paths.flows_root
        targets = [(bucket.path_under(root), bucket) for bucket in buckets.values()]
        outcomes = await asyncio.gather(
            *(
                self._writer.write(path, to_json(bucket.nodes, pretty=ctx.pretty))
                for path, bucket in targets
            ),
            return_exceptions=True,
        )

        rewritten: Set[Path] = set()
        for (path, _), outcome in zip(targets, outcomes):
            key = absolute_path(path)
            # A failed write still targeted a live tab, so it must not be collected.
            rewritten.add(key)
            if isinstance(outcome, BaseException):
                logger.warning("Failed to write %s: %s", path, outcome)
                result.failed[path] = str(outcome)
            else:
                result.written.append(path)
                ctx.files.add(key)
        return rewritten

    def _collect_stale(
        self, snapshot: List[Path], rewritten: Set[Path], ctx: StorageContext
    ) -> List[Path]:
        root = ctx.paths.flows_root.resolve()
        deleted: List[Path] = []
        for path in snapshot:
            if path in rewritten:
                continue
            if not path.parent.resolve().is_relative_to(root):
                logger.debug("Not deleting %s: its directory lies outside %s", path, root)
                continue
            try:
                path.unlink()
            except OSError as e:
                logger.debug("Could not delete stale file %s: %s", path, e)
                continue
            deleted.append(path)
            ctx.files.discard(path)
            try:
                backup_path_for(path).unlink()
            except OSError:
                pass
            try:
                if path.parent != ctx.paths.flows_root:
                    path.parent.rmdir()
            except OSError:
                pass
        if deleted:
            logger.info("Removed %d stale flow file(s)", len(deleted))
        return deleted

    async def save(
        self,
        ctx: StorageContext,
        document: List[Node],
        project: Optional[Project] = None,
        timestamp: Optional[int] = None,
    ) -> SaveResult:
        """Write ``document`` as per-tab files and remove files left behind."""
        check_save_allowed(project)

        result = SaveResult()
        if ctx.paths.flows_root is None:
            raise ValueError("Cannot save per-tab flows without a user directory")

        snapshot = ctx.refresh_files()
        buckets = self.build_buckets(ctx, document, timestamp)
        rewritten = await self._write_buckets(ctx, buckets, result)
        result.deleted = self._collect_stale(snapshot, rewritten, ctx)

        logger.info(
            "Saved %d tab file(s) under %s (%d failed)",
            len(result.written),
            ctx.paths.flows_root,
            len(result.failed),
        )
        return result
