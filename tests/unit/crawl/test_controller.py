"""Unit tests for crawl/controller.py — resume, checkpoint cadence, drain and abort."""

from unittest.mock import MagicMock, patch

import pytest

from drive_inventory.checkpoint.store import CheckpointReadError, CheckpointStore, CheckpointWriteError
from drive_inventory.config import AppConfig
from drive_inventory.crawl.controller import (
    CrawlAbortedError,
    CrawlController,
    CrawlOutcome,
    CrawlPhase,
    crawl_controller_from_config,
)
from drive_inventory.crawl.interrupt import InterruptSignal
from drive_inventory.drive.client import DriveApiError, DriveLister, DriveTransportError
from drive_inventory.drive.models import FileRecord, Page, RecordConversionError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _page(n: int, last: bool = False) -> Page:
    return Page(
        files=[FileRecord(f"id-{n}", "text/plain", ("root",), f"file-{n}.txt")],
        next_page_token=None if last else f"tok-{n}",
    )


class FakeStore(CheckpointStore):
    """In-memory store recording the page count of every save."""

    def __init__(self, initial: list[Page] | None = None) -> None:
        self.pages = list(initial or [])
        self.saves: list[int] = []

    def load(self) -> list[Page]:
        return list(self.pages)

    def save(self, pages: list[Page]) -> None:
        self.pages = list(pages)
        self.saves.append(len(pages))


class FakeLister:
    """Serves pages 1..total in order, recording the tokens it was asked for."""

    def __init__(self, total: int, fail_at: int | None = None, error: Exception | None = None) -> None:
        self.total = total
        self.fail_at = fail_at
        self.error = error or DriveApiError(500, "backend error")
        self.tokens: list[str | None] = []
        self.queries: list[str | None] = []

    def list_page(self, continuation_token: str | None, filter_query: str | None) -> Page:
        self.tokens.append(continuation_token)
        self.queries.append(filter_query)
        n = 1 if continuation_token is None else int(continuation_token.split("-")[1]) + 1
        if n == self.fail_at:
            raise self.error
        return _page(n, last=n == self.total)


def _controller(
    lister: FakeLister,
    store: FakeStore,
    interrupt: InterruptSignal | None = None,
    **kwargs: object,
) -> CrawlController:
    return CrawlController(lister, store, interrupt or InterruptSignal(), **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Fresh crawl tests
# ---------------------------------------------------------------------------


class TestFreshCrawl:
    def test_fetches_until_token_absent(self) -> None:
        lister = FakeLister(total=3)
        store = FakeStore()

        outcome = _controller(lister, store).run()

        assert outcome is CrawlOutcome.DONE
        assert lister.tokens == [None, "tok-1", "tok-2"]
        assert [p.files[0].id for p in store.pages] == ["id-1", "id-2", "id-3"]

    def test_single_page_crawl_checkpoints_once(self) -> None:
        store = FakeStore()

        _controller(FakeLister(total=1), store).run()

        assert store.saves == [1]

    def test_checkpoints_every_ten_pages_and_at_end(self) -> None:
        store = FakeStore()

        _controller(FakeLister(total=25), store).run()

        assert store.saves == [10, 20, 25]

    def test_final_page_on_multiple_of_ten_saved(self) -> None:
        store = FakeStore()

        _controller(FakeLister(total=20), store).run()

        assert store.saves[-1] == 20
        assert 10 in store.saves

    def test_custom_cadence(self) -> None:
        store = FakeStore()

        _controller(FakeLister(total=7), store, checkpoint_every=3).run()

        assert store.saves == [3, 6, 7]

    def test_passes_query_through(self) -> None:
        lister = FakeLister(total=2)

        _controller(lister, FakeStore(), query="'me' in owners").run()

        assert lister.queries == ["'me' in owners", "'me' in owners"]

    def test_on_page_receives_index_and_page(self) -> None:
        seen: list[tuple[int, str]] = []

        _controller(
            FakeLister(total=2),
            FakeStore(),
            on_page=lambda i, page: seen.append((i, page.files[0].id)),
        ).run()

        assert seen == [(1, "id-1"), (2, "id-2")]

    def test_phase_done_after_completion(self) -> None:
        controller = _controller(FakeLister(total=2), FakeStore())
        controller.run()
        assert controller.phase is CrawlPhase.DONE

    def test_rejects_non_positive_cadence(self) -> None:
        with pytest.raises(ValueError):
            _controller(FakeLister(total=1), FakeStore(), checkpoint_every=0)


# ---------------------------------------------------------------------------
# Resume tests
# ---------------------------------------------------------------------------


class TestResume:
    def test_resumes_from_last_token_without_refetching(self) -> None:
        restored = [_page(1), _page(2), _page(3)]
        lister = FakeLister(total=5)
        store = FakeStore(restored)

        _controller(lister, store).run()

        assert lister.tokens == ["tok-3", "tok-4"]
        assert [p.files[0].id for p in store.pages] == ["id-1", "id-2", "id-3", "id-4", "id-5"]

    def test_cadence_counts_restored_pages(self) -> None:
        store = FakeStore([_page(n) for n in range(1, 9)])

        _controller(FakeLister(total=12), store).run()

        assert store.saves == [10, 12]

    def test_complete_checkpoint_fetches_nothing(self) -> None:
        lister = FakeLister(total=2)
        store = FakeStore([_page(1), _page(2, last=True)])

        outcome = _controller(lister, store).run()

        assert outcome is CrawlOutcome.DONE
        assert lister.tokens == []
        assert store.saves == []

    def test_read_failure_stops_before_any_fetch(self) -> None:
        lister = FakeLister(total=2)
        store = MagicMock(spec=CheckpointStore)
        store.load.side_effect = CheckpointReadError("corrupt")

        with pytest.raises(CheckpointReadError):
            _controller(lister, store).run()  # type: ignore[arg-type]

        assert lister.tokens == []
        store.save.assert_not_called()


# ---------------------------------------------------------------------------
# Interrupt tests
# ---------------------------------------------------------------------------


class TestInterrupt:
    def test_drains_after_page_where_interrupt_set(self) -> None:
        interrupt = InterruptSignal()
        lister = FakeLister(total=20)
        store = FakeStore()

        def on_page(index: int, page: Page) -> None:
            if index == 4:
                interrupt.set()

        outcome = _controller(lister, store, interrupt, on_page=on_page).run()

        assert outcome is CrawlOutcome.DRAINED
        assert len(lister.tokens) == 4
        assert store.saves == [4]
        assert len(store.pages) == 4

    def test_interrupt_before_start_still_fetches_one_page(self) -> None:
        interrupt = InterruptSignal()
        interrupt.set()
        lister = FakeLister(total=5)
        store = FakeStore()

        outcome = _controller(lister, store, interrupt).run()

        assert outcome is CrawlOutcome.DRAINED
        assert lister.tokens == [None]
        assert store.saves == [1]

    def test_drain_is_logged_by_the_crawl_loop(self, caplog: pytest.LogCaptureFixture) -> None:
        interrupt = InterruptSignal()
        interrupt.set()

        with caplog.at_level("WARNING", logger="drive_inventory.crawl.controller"):
            _controller(FakeLister(total=5), FakeStore(), interrupt).run()

        assert "drain requested; page_index:1" in caplog.text

    def test_last_page_wins_over_interrupt(self) -> None:
        interrupt = InterruptSignal()
        interrupt.set()

        outcome = _controller(FakeLister(total=1), FakeStore(), interrupt).run()

        assert outcome is CrawlOutcome.DONE

    def test_drained_crawl_resumes_where_it_stopped(self) -> None:
        interrupt = InterruptSignal()
        interrupt.set()
        store = FakeStore()
        _controller(FakeLister(total=3), store, interrupt).run()

        lister = FakeLister(total=3)
        _controller(lister, store).run()

        assert lister.tokens == ["tok-1", "tok-2"]
        assert len(store.pages) == 3


# ---------------------------------------------------------------------------
# Failure tests
# ---------------------------------------------------------------------------


class TestFetchFailure:
    def test_failure_checkpoints_then_aborts(self) -> None:
        lister = FakeLister(total=20, fail_at=4)
        store = FakeStore()
        controller = _controller(lister, store)

        with pytest.raises(CrawlAbortedError) as excinfo:
            controller.run()

        assert store.saves == [3]
        assert excinfo.value.page_count == 3
        assert isinstance(excinfo.value.__cause__, DriveApiError)
        assert controller.phase is CrawlPhase.ABORTED

    def test_failure_is_not_retried(self) -> None:
        lister = FakeLister(total=20, fail_at=2)

        with pytest.raises(CrawlAbortedError):
            _controller(lister, FakeStore()).run()

        assert lister.tokens == [None, "tok-1"]

    def test_conversion_failure_aborts_the_same_way(self) -> None:
        lister = FakeLister(total=5, fail_at=2, error=RecordConversionError("bad size"))
        store = FakeStore()

        with pytest.raises(CrawlAbortedError):
            _controller(lister, store).run()

        assert store.saves == [1]

    def test_failure_on_first_page_writes_empty_checkpoint(self) -> None:
        store = FakeStore()

        with pytest.raises(CrawlAbortedError):
            _controller(FakeLister(total=5, fail_at=1), store).run()

        assert store.saves == [0]

    def test_transport_failure_from_drive_lister_checkpoints_then_aborts(self) -> None:
        service = MagicMock()
        service.files.return_value.list.return_value.execute.side_effect = [
            {"files": [{"id": "a", "name": "a.txt"}], "nextPageToken": "t1"},
            {"files": [{"id": "b", "name": "b.txt"}], "nextPageToken": "t2"},
            {"files": [{"id": "c", "name": "c.txt"}], "nextPageToken": "t3"},
            TimeoutError("timed out"),
        ]
        store = FakeStore()

        with pytest.raises(CrawlAbortedError) as excinfo:
            _controller(DriveLister(service), store).run()  # type: ignore[arg-type]

        assert store.saves == [3]
        assert [page.next_page_token for page in store.pages] == ["t1", "t2", "t3"]
        assert isinstance(excinfo.value.__cause__, DriveTransportError)

    def test_write_failure_propagates(self) -> None:
        store = MagicMock(spec=CheckpointStore)
        store.load.return_value = []
        store.save.side_effect = CheckpointWriteError("progress may be permanently lost")

        with pytest.raises(CheckpointWriteError):
            _controller(FakeLister(total=1), store).run()  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# crawl_controller_from_config tests
# ---------------------------------------------------------------------------


class TestCrawlControllerFromConfig:
    def test_wires_config_values(self) -> None:
        config = AppConfig(query="", checkpoint_every=5)
        with patch("drive_inventory.crawl.controller.drive_lister_from_config") as mock_lister:
            controller = crawl_controller_from_config(config, InterruptSignal())

        mock_lister.assert_called_once_with(config)
        assert controller._query is None
        assert controller._checkpoint_every == 5
