"""Crawl controller: resumable, checkpointed pagination over files.list."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from drive_inventory.checkpoint.store import CheckpointStore, checkpoint_store_from_config
from drive_inventory.drive.auth import DriveAuthError
from drive_inventory.drive.client import (
    DriveApiError,
    DriveTransportError,
    drive_lister_from_config,
)
from drive_inventory.drive.models import Page, RecordConversionError

if TYPE_CHECKING:
    from drive_inventory.config import AppConfig
    from drive_inventory.crawl.interrupt import InterruptSignal

logger = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_EVERY = 10

# Failures of a single page fetch. All of them end the crawl after a
# best-effort checkpoint; none of them is retried here.
FETCH_ERRORS = (DriveApiError, DriveTransportError, DriveAuthError, RecordConversionError)


class PageLister(Protocol):
    def list_page(self, continuation_token: str | None, filter_query: str | None) -> Page: ...


class CrawlPhase(enum.Enum):
    FETCHING = "fetching"
    CHECKPOINTING = "checkpointing"
    DRAINING = "draining"
    DONE = "done"
    ABORTED = "aborted"


class CrawlOutcome(enum.Enum):
    """How a crawl that did not fail came to an end."""

    DONE = "done"
    DRAINED = "drained"


class CrawlAbortedError(Exception):
    """Raised when a page fetch fails. Pages gathered so far were checkpointed."""

    def __init__(self, page_count: int, cause: Exception) -> None:
        super().__init__(
            f"Crawl aborted after {page_count} page(s); progress checkpointed: {cause}"
        )
        self.page_count = page_count


class CrawlController:
    """Drives the lister page by page and persists the accumulated pages.

    The page list is restored from the checkpoint store at the start of
    ``run`` and resumes from the last page's continuation token. It is
    written back in full when the listing completes, when an interrupt is
    observed, when a fetch fails, and every ``checkpoint_every`` pages.
    """

    def __init__(
        self,
        lister: PageLister,
        checkpoint_store: CheckpointStore,
        interrupt: InterruptSignal,
        query: str | None = None,
        checkpoint_every: int = DEFAULT_CHECKPOINT_EVERY,
        on_page: Callable[[int, Page], None] | None = None,
    ) -> None:
        """Initialise the controller.

        Args:
            lister: Remote lister returning one Page per call.
            checkpoint_store: Store the page list is restored from and saved to.
            interrupt: Drain request flag, polled after each appended page.
            query: Filter expression passed to the lister unchanged.
            checkpoint_every: Periodic checkpoint cadence in accumulated pages.
            on_page: Optional callback receiving (1-based page index, page)
                after each successful fetch.
        """
        if checkpoint_every < 1:
            raise ValueError("checkpoint_every must be at least 1")
        self._lister = lister
        self._store = checkpoint_store
        self._interrupt = interrupt
        self._query = query
        self._checkpoint_every = checkpoint_every
        self._on_page = on_page
        self._pages: list[Page] = []
        self.phase = CrawlPhase.FETCHING

    @property
    def pages(self) -> list[Page]:
        return list(self._pages)

    def run(self) -> CrawlOutcome:
        """Crawl until the listing completes or a drain is requested.

        Returns:
            CrawlOutcome.DONE when the last page has been fetched (or was
            already present in the checkpoint), CrawlOutcome.DRAINED when
            stopped by an interrupt.

        Raises:
            CheckpointReadError: If the existing checkpoint cannot be read.
                Raised before any fetch.
            CheckpointWriteError: If a checkpoint write fails.
            CrawlAbortedError: If a page fetch fails.
        """
        self._pages = self._store.load()
        if self._pages and self._pages[-1].is_last:
            logger.info(
                "[crawl] checkpoint already complete; page_count:%d", len(self._pages)
            )
            self.phase = CrawlPhase.DONE
            return CrawlOutcome.DONE
        if self._pages:
            logger.info("[crawl] resuming; page_count:%d", len(self._pages))

        self.phase = CrawlPhase.FETCHING
        while True:
            token = self._pages[-1].next_page_token if self._pages else None
            try:
                page = self._lister.list_page(token, self._query)
            except FETCH_ERRORS as exc:
                logger.error(
                    "[crawl] page fetch failed; page_index:%d;error:%s", len(self._pages) + 1, exc
                )
                self._checkpoint()
                self.phase = CrawlPhase.ABORTED
                raise CrawlAbortedError(len(self._pages), exc) from exc

            self._pages.append(page)
            index = len(self._pages)
            logger.info("[crawl] fetched page; page_index:%d;file_count:%d", index, len(page.files))
            if self._on_page is not None:
                self._on_page(index, page)

            if page.is_last:
                self._checkpoint()
                self.phase = CrawlPhase.DONE
                logger.info("[crawl] listing complete; page_count:%d", index)
                return CrawlOutcome.DONE

            if self._interrupt.is_set():
                logger.warning("[crawl] drain requested; page_index:%d", index)
                self.phase = CrawlPhase.DRAINING
                self._checkpoint()
                self.phase = CrawlPhase.DONE
                logger.info("[crawl] drained on interrupt; page_count:%d", index)
                return CrawlOutcome.DRAINED

            if index % self._checkpoint_every == 0:
                self._checkpoint()
                self.phase = CrawlPhase.FETCHING

    def _checkpoint(self) -> None:
        previous = self.phase
        self.phase = CrawlPhase.CHECKPOINTING
        self._store.save(self._pages)
        self.phase = previous


def crawl_controller_from_config(
    config: AppConfig,
    interrupt: InterruptSignal,
    on_page: Callable[[int, Page], None] | None = None,
) -> CrawlController:
    """Construct a CrawlController wired to the Drive API and configured store.

    Args:
        config: Application configuration instance.
        interrupt: Drain request flag.
        on_page: Optional per-page callback.

    Returns:
        Configured CrawlController instance.
    """
    # Store first so a misconfigured backend fails before the OAuth prompt.
    store = checkpoint_store_from_config(config)
    return CrawlController(
        lister=drive_lister_from_config(config),
        checkpoint_store=store,
        interrupt=interrupt,
        query=config.query or None,
        checkpoint_every=config.checkpoint_every,
        on_page=on_page,
    )
