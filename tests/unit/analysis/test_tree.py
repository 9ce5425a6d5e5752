"""Unit tests for analysis/tree.py — size formatting and tree aggregation."""

import io

import pytest

from drive_inventory.analysis.index import MultiParentError, build_index
from drive_inventory.analysis.tree import aggregate_tree, build_and_print, format_size
from drive_inventory.drive.models import FOLDER_MIME_TYPE, FileRecord, Page

MIB = 2**20


def _rec(id: str, *parents: str, size: int | None = None, name: str | None = None) -> FileRecord:
    return FileRecord(
        id=id,
        mime_type=FOLDER_MIME_TYPE if size is None else "application/octet-stream",
        parents=parents,
        name=name or id,
        size_used=size,
    )


def _render(records: list[FileRecord], min_bytes: int = 50 * MIB) -> list[str]:
    out = io.StringIO()
    build_and_print(build_index([Page(records)]), out=out, min_bytes=min_bytes)
    return out.getvalue().splitlines()


# ---------------------------------------------------------------------------
# format_size tests
# ---------------------------------------------------------------------------


class TestFormatSize:
    @pytest.mark.parametrize(
        ("num_bytes", "expected"),
        [
            (0, "0 B"),
            (512, "512.00 B"),
            (1023, "1023.00 B"),
            (1024, "1.00 KiB"),
            (1536, "1.50 KiB"),
            (50 * MIB, "50.00 MiB"),
            (3 * 2**30 + 2**29, "3.50 GiB"),
            (4096 * 2**30, "4096.00 GiB"),
        ],
    )
    def test_scales_to_largest_unit(self, num_bytes: int, expected: str) -> None:
        assert format_size(num_bytes) == expected


# ---------------------------------------------------------------------------
# Aggregation tests
# ---------------------------------------------------------------------------


class TestAggregateTree:
    def test_parent_aggregate_crosses_threshold_child_does_not(self) -> None:
        lines = _render([_rec("a", size=10 * MIB, name="A"), _rec("b", "a", size=45 * MIB, name="B")])
        assert lines == ["55.00 MiB  A"]

    def test_post_order_with_indentation(self) -> None:
        lines = _render(
            [
                _rec("root", name="My Drive"),
                _rec("docs", "root", name="Docs"),
                _rec("big", "docs", size=60 * MIB, name="big.iso"),
                _rec("small", "root", size=MIB, name="small.txt"),
            ]
        )
        assert lines == [
            "    60.00 MiB  big.iso",
            "  60.00 MiB  Docs",
            "61.00 MiB  My Drive",
        ]

    def test_threshold_is_inclusive(self) -> None:
        assert _render([_rec("a", size=50 * MIB, name="A")]) == ["50.00 MiB  A"]
        assert _render([_rec("a", size=50 * MIB - 1, name="A")]) == []

    def test_missing_parent_becomes_synthetic_root(self) -> None:
        lines = _render(
            [
                _rec("x", "shared-folder", size=30 * MIB, name="x.bin"),
                _rec("y", "shared-folder", size=30 * MIB, name="y.bin"),
            ]
        )
        assert lines == ["60.00 MiB  Root"]

    def test_absent_sizes_count_as_zero(self) -> None:
        lines = _render([_rec("f"), _rec("g", "f")], min_bytes=0)
        assert lines == ["  0 B  g", "0 B  f"]

    def test_returned_lines_carry_sizes(self) -> None:
        index = build_index([Page([_rec("a", size=10 * MIB), _rec("b", "a", size=45 * MIB)])])

        lines = aggregate_tree(index, min_bytes=0)

        assert [(line.id, line.depth, line.size) for line in lines] == [
            ("b", 1, 45 * MIB),
            ("a", 0, 55 * MIB),
        ]

    def test_deep_chain_does_not_hit_recursion_limit(self) -> None:
        depth = 5000
        records = [_rec("n0", size=MIB)] + [
            _rec(f"n{i}", f"n{i - 1}", size=MIB) for i in range(1, depth)
        ]
        index = build_index([Page(records)])

        lines = aggregate_tree(index, min_bytes=depth * MIB)

        assert [(line.id, line.size) for line in lines] == [("n0", depth * MIB)]

    def test_cycle_unreachable_from_roots_is_not_printed(self) -> None:
        lines = _render(
            [_rec("a", size=60 * MIB, name="A"), _rec("c1", "c2", size=60 * MIB), _rec("c2", "c1")]
        )
        assert lines == ["60.00 MiB  A"]


class TestMultiParentRejection:
    def test_raises_and_prints_nothing(self) -> None:
        out = io.StringIO()
        index = build_index(
            [Page([_rec("a", size=100 * MIB), _rec("b"), _rec("m", "a", "b", size=100 * MIB)])]
        )

        with pytest.raises(MultiParentError):
            build_and_print(index, out=out)

        assert out.getvalue() == ""
