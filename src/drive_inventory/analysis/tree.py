"""Size-weighted containment tree over a MetadataIndex."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TextIO

from drive_inventory.analysis.index import MetadataIndex
from drive_inventory.config import DEFAULT_TREE_MIN_BYTES
from drive_inventory.drive.models import FileRecord

logger = logging.getLogger(__name__)

SYNTHETIC_ROOT_NAME = "Root"
INDENT = "  "

_UNITS = (("GiB", 2**30), ("MiB", 2**20), ("KiB", 2**10))


def format_size(num_bytes: int) -> str:
    """Render a byte count in the largest binary unit where it is at least 1.

    >>> format_size(0)
    '0 B'
    >>> format_size(1536)
    '1.50 KiB'
    """
    for unit, scale in _UNITS:
        if num_bytes >= scale:
            return f"{num_bytes / scale:.2f} {unit}"
    if num_bytes == 0:
        return "0 B"
    return f"{num_bytes:.2f} B"


@dataclass(frozen=True)
class TreeLine:
    depth: int
    size: int
    name: str
    id: str

    def render(self) -> str:
        return f"{INDENT * self.depth}{format_size(self.size)}  {self.name}"


@dataclass
class _Frame:
    id: str
    name: str
    depth: int
    children: Iterator[FileRecord]
    total: int


def aggregate_tree(index: MetadataIndex, min_bytes: int = DEFAULT_TREE_MIN_BYTES) -> list[TreeLine]:
    """Compute aggregate sizes and return the lines to print, in post-order.

    Roots are the records without parents, followed by one synthetic
    ``Root`` node per parent id that is referenced but was not fetched
    (a folder the crawling account does not own, or a shared root). A
    node's aggregate is its own ``size_used`` (0 when absent) plus its
    children's aggregates. Only nodes whose aggregate is at least
    ``min_bytes`` produce a line.

    The parent relation is expected to be acyclic. The walk is iterative and
    keeps a visited set, so a cycle or a node reached twice is skipped with a
    warning instead of recursing forever.

    Raises:
        MultiParentError: If any record has more than one parent. Checked
            before the walk starts.
    """
    index.require_single_parent()

    visited: set[str] = set()
    lines: list[TreeLine] = []

    def walk(root_id: str, name: str, own_size: int) -> None:
        visited.add(root_id)
        stack = [_Frame(root_id, name, 0, iter(index.children(root_id)), own_size)]
        while stack:
            frame = stack[-1]
            child = next(frame.children, None)
            if child is not None:
                if child.id in visited:
                    logger.warning(
                        "[aggregate_tree] node reached twice, skipping; id:%s;parent:%s",
                        child.id,
                        frame.id,
                    )
                    continue
                visited.add(child.id)
                stack.append(
                    _Frame(
                        child.id,
                        child.name,
                        frame.depth + 1,
                        iter(index.children(child.id)),
                        child.size_used or 0,
                    )
                )
                continue

            stack.pop()
            if frame.total >= min_bytes:
                lines.append(TreeLine(frame.depth, frame.total, frame.name, frame.id))
            if stack:
                stack[-1].total += frame.total

    for record in index.records:
        if not record.parents:
            walk(record.id, record.name, record.size_used or 0)
    for parent_id in index.missing_parent_ids():
        walk(parent_id, SYNTHETIC_ROOT_NAME, 0)

    unreached = len(index.records) - len(index.id_to_record.keys() & visited)
    if unreached:
        logger.warning("[aggregate_tree] records not reachable from any root; count:%d", unreached)
    return lines


def build_and_print(
    index: MetadataIndex,
    out: TextIO | None = None,
    min_bytes: int = DEFAULT_TREE_MIN_BYTES,
) -> list[TreeLine]:
    """Print the tree report. Nothing is printed if the index has multi-parent records.

    Raises:
        MultiParentError: If any record has more than one parent.
    """
    out = out or sys.stdout
    lines = aggregate_tree(index, min_bytes)
    for line in lines:
        print(line.render(), file=out)
    return lines
