"""In-memory index over the records of a completed (or partial) crawl."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from drive_inventory.drive.models import FileRecord, Page

logger = logging.getLogger(__name__)


class MultiParentError(Exception):
    """Raised when a record with more than one parent blocks tree building."""

    def __init__(self, record_ids: list[str]) -> None:
        preview = ", ".join(record_ids[:5])
        more = f" (+{len(record_ids) - 5} more)" if len(record_ids) > 5 else ""
        super().__init__(
            f"{len(record_ids)} record(s) have more than one parent: {preview}{more}"
        )
        self.record_ids = record_ids


@dataclass
class MetadataIndex:
    """Lookup structures derived from the flattened page list.

    Attributes:
        records: Every record once, in crawl order (page order, then order
            within the page).
        id_to_record: Record by id.
        parent_id_to_children: Children by parent id, in crawl order. A record
            with several parents appears under each of them.
        multi_parent: Records with more than one parent, in crawl order.
        duplicate_ids: Ids seen more than once across pages.
    """

    records: list[FileRecord] = field(default_factory=list)
    id_to_record: dict[str, FileRecord] = field(default_factory=dict)
    parent_id_to_children: dict[str, list[FileRecord]] = field(default_factory=dict)
    multi_parent: list[FileRecord] = field(default_factory=list)
    duplicate_ids: list[str] = field(default_factory=list)

    def children(self, parent_id: str) -> list[FileRecord]:
        return self.parent_id_to_children.get(parent_id, [])

    def missing_parent_ids(self) -> list[str]:
        """Parent ids referenced by some record but absent from the index.

        Ordered by first reference in crawl order.
        """
        return [pid for pid in self.parent_id_to_children if pid not in self.id_to_record]

    def require_single_parent(self) -> None:
        """Check the precondition for tree building.

        Raises:
            MultiParentError: If any record has more than one parent.
        """
        if self.multi_parent:
            raise MultiParentError([r.id for r in self.multi_parent])


def iter_records(pages: Iterable[Page]) -> Iterable[FileRecord]:
    for page in pages:
        yield from page.files


def build_index(pages: Iterable[Page]) -> MetadataIndex:
    """Build a MetadataIndex from pages in crawl order.

    A duplicate id keeps its first position in crawl order but takes the
    value of its last occurrence. The duplicate is logged and recorded.

    Args:
        pages: Pages as persisted by the crawl.

    Returns:
        The populated MetadataIndex.
    """
    index = MetadataIndex()
    for record in iter_records(pages):
        if record.id in index.id_to_record:
            logger.warning("[build_index] duplicate id, keeping last; id:%s", record.id)
            index.duplicate_ids.append(record.id)
        index.id_to_record[record.id] = record

    # dict preserves first-insertion order while holding the last value.
    index.records = list(index.id_to_record.values())
    for record in index.records:
        for parent_id in record.parents:
            index.parent_id_to_children.setdefault(parent_id, []).append(record)
        if len(record.parents) > 1:
            index.multi_parent.append(record)

    logger.info(
        "[build_index] built index; record_count:%d;parent_count:%d;multi_parent:%d",
        len(index.records),
        len(index.parent_id_to_children),
        len(index.multi_parent),
    )
    return index
