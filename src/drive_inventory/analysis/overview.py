"""Flat-scan overview: total usage and structurally unusual records."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import TextIO

from drive_inventory.analysis.index import MetadataIndex
from drive_inventory.analysis.tree import format_size
from drive_inventory.config import DEFAULT_UNOWNED_MIN_BYTES
from drive_inventory.drive.models import FileRecord


@dataclass
class Overview:
    """Results of the overview scans, in crawl order.

    Attributes:
        total_size_used: Sum of ``size_used`` (absent counts as 0).
        total_content_size: Sum of ``content_size`` (absent counts as 0).
        not_single_parent: Records with zero or several parents.
        unowned_parent: Records with a parent id outside the crawl whose
            ``size_used`` exceeds the configured threshold.
    """

    total_size_used: int = 0
    total_content_size: int = 0
    not_single_parent: list[FileRecord] = field(default_factory=list)
    unowned_parent: list[FileRecord] = field(default_factory=list)


def compute_overview(
    index: MetadataIndex, unowned_min_bytes: int = DEFAULT_UNOWNED_MIN_BYTES
) -> Overview:
    overview = Overview()
    known_ids = index.id_to_record.keys()
    for record in index.records:
        overview.total_size_used += record.size_used or 0
        overview.total_content_size += record.content_size or 0
        if len(record.parents) != 1:
            overview.not_single_parent.append(record)
        if (
            any(pid not in known_ids for pid in record.parents)
            and (record.size_used or 0) > unowned_min_bytes
        ):
            overview.unowned_parent.append(record)
    return overview


def print_overview(
    index: MetadataIndex,
    out: TextIO | None = None,
    unowned_min_bytes: int = DEFAULT_UNOWNED_MIN_BYTES,
) -> Overview:
    """Print total usage and the two anomaly listings.

    Args:
        index: Index built from the checkpointed pages.
        out: Stream to print to (default: stdout).
        unowned_min_bytes: A record under an unknown parent is listed only if
            its ``size_used`` is strictly greater than this.

    Returns:
        The computed Overview.
    """
    out = out or sys.stdout
    overview = compute_overview(index, unowned_min_bytes)

    print(
        f"Total size used: {format_size(overview.total_size_used)}"
        f" ({overview.total_size_used} bytes) across {len(index.records)} files",
        file=out,
    )
    print(
        f"Total content size: {format_size(overview.total_content_size)}"
        f" ({overview.total_content_size} bytes)",
        file=out,
    )

    print(file=out)
    print(f"Files without exactly one parent ({len(overview.not_single_parent)}):", file=out)
    for record in overview.not_single_parent:
        print(record.listing_line(), file=out)

    print(file=out)
    print(f"Files with parents not owned by me ({len(overview.unowned_parent)}):", file=out)
    for record in overview.unowned_parent:
        print(f"{format_size(record.size_used or 0):>12}  {record.listing_line()}", file=out)

    return overview
