"""
Node helpers shared by the assembler and the partitioner.

A node is a plain ``dict`` decoded from JSON. Only a handful of keys matter
here: ``id``, ``type``, ``z`` (parent tab id), ``label``/``name`` and ``_ts``.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

TAB_TYPES = ("tab", "subflow")
TS_FIELD = "_ts"
FLOWS_SUFFIX = ".flows.json"
SORT_FIELDS = ("z", "type", "id")

_UNSAFE_NAME_RE = re.compile(r'[?/\\*:><" ,-]+')

Node = Dict[str, Any]


def is_node(value: Any) -> bool:
    """True for anything that can be treated as a node object."""
    return isinstance(value, dict)


def is_tab(node: Node) -> bool:
    return node.get("type") in TAB_TYPES


def is_tab_member(node: Node) -> bool:
    return bool(node.get("z"))


def is_tabless(node: Node) -> bool:
    """A tabless node is neither a tab/subflow nor a member of one."""
    return not is_tab(node) and not is_tab_member(node)


def sanitize_tab_name(name: str) -> str:
    """Collapse every run of path-hostile characters into a single hyphen."""
    return _UNSAFE_NAME_RE.sub("-", name)


def safe_folder_name(name: str) -> str:
    """Sanitize ``name`` for use as a single directory under the per-tab root.

    Names made only of dots (``.``, ``..``) would point at the root or its
    parent, so their dots become hyphens.
    """
    name = sanitize_tab_name(name)
    if not name.strip("."):
        return "-" * max(len(name), 1)
    return name


def tab_display_name(node: Node) -> str:
    """Folder name for a tab: its label, else its name, else its id."""
    name = node.get("label") or node.get("name") or node.get("id") or ""
    return safe_folder_name(str(name))


def without_ts(node: Node) -> Node:
    return {k: v for k, v in node.items() if k != TS_FIELD}


def get_ts(node: Node) -> int:
    ts = node.get(TS_FIELD)
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        return 0
    return ts


def to_json(value: Any, pretty: bool = False) -> str:
    """Encode like ``JSON.stringify``: compact, or indented by four spaces."""
    if pretty:
        return json.dumps(value, indent=4, ensure_ascii=False)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _field_key(value: Any) -> Tuple[int, str]:
    # Missing values sort after present ones.
    if value is None:
        return (1, "")
    return (0, str(value))


def sort_key(node: Node, fields: Iterable[str] = SORT_FIELDS) -> Tuple[Tuple[int, str], ...]:
    return tuple(_field_key(node.get(field)) for field in fields)


def sort_bucket(nodes: List[Node]) -> List[Node]:
    """Stable sort by (z, type, id), then move the tab node to the front."""
    ordered = sorted(nodes, key=sort_key)
    tab_index: Optional[int] = next(
        (i for i, n in enumerate(ordered) if is_tab(n)), None
    )
    if tab_index is not None:
        ordered.insert(0, ordered.pop(tab_index))
    return ordered
