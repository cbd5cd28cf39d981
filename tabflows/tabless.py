"""
Registry of tabless nodes.

Several per-tab files may each carry a copy of the same shared config node.
The registry keeps exactly one copy per id using last-write-wins on the
``_ts`` millisecond timestamp. Concurrent edits from two sources are resolved
arbitrarily by timestamp.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Iterator, List, Optional

from .nodes import TS_FIELD, Node, get_ts, without_ts

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class TablessRegistry:
    """Authoritative copy of every tabless node, keyed by node id."""

    def __init__(self) -> None:
        self._nodes: Dict[str, Node] = {}

    def ingest(self, node: Node) -> bool:
        """Offer a candidate copy; return True if it became the entry."""
        node_id = node.get("id")
        if not node_id:
            logger.warning("Ignoring tabless node without id (type=%s)", node.get("type"))
            return False

        existing = self._nodes.get(node_id)
        if existing is None:
            if not node.get(TS_FIELD):
                node[TS_FIELD] = 0
            self._nodes[node_id] = node
            return True

        if get_ts(node) > get_ts(existing):
            logger.debug(
                "Replacing tabless node %s (_ts %s -> %s)",
                node_id,
                get_ts(existing),
                get_ts(node),
            )
            self._nodes[node_id] = node
            return True
        return False

    def stamp_if_changed(self, node: Node, timestamp: Optional[int] = None) -> bool:
        """Stamp ``node`` with a fresh ``_ts`` if it differs from the entry.

        The comparison ignores ``_ts`` on both sides, so an unchanged node
        keeps its timestamp across saves.
        """
        existing = self._nodes.get(node.get("id"))
        if existing is not None and without_ts(existing) == without_ts(node):
            return False
        node[TS_FIELD] = timestamp if timestamp is not None else now_ms()
        return True

    def get(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def ids(self) -> List[str]:
        return list(self._nodes)

    def values(self) -> List[Node]:
        return list(self._nodes.values())

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._nodes))

    def __len__(self) -> int:
        return len(self._nodes)
