"""Command-line entry point: crawl-and-list, overview and tree modes."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import TYPE_CHECKING

from drive_inventory import __version__
from drive_inventory.analysis.index import MultiParentError, build_index
from drive_inventory.analysis.overview import print_overview
from drive_inventory.analysis.tree import build_and_print
from drive_inventory.checkpoint.store import (
    CheckpointReadError,
    CheckpointWriteError,
    checkpoint_store_from_config,
)
from drive_inventory.config import load_config
from drive_inventory.crawl.controller import (
    CrawlAbortedError,
    CrawlOutcome,
    crawl_controller_from_config,
)
from drive_inventory.crawl.interrupt import InterruptSignal
from drive_inventory.drive.auth import DriveAuthError

if TYPE_CHECKING:
    from drive_inventory.config import AppConfig
    from drive_inventory.drive.models import Page

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1

FATAL_ERRORS = (
    CheckpointReadError,
    CheckpointWriteError,
    CrawlAbortedError,
    DriveAuthError,
    MultiParentError,
    ValueError,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drive-inventory",
        description="Inventory Google Drive metadata and analyze space usage.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--list",
        dest="mode",
        action="store_const",
        const="list",
        help="crawl files.list (resuming from the checkpoint) and print each fetched file",
    )
    mode.add_argument(
        "--overview",
        dest="mode",
        action="store_const",
        const="overview",
        help="print total usage and files with unusual parents",
    )
    mode.add_argument(
        "--tree",
        dest="mode",
        action="store_const",
        const="tree",
        help="print the size-weighted folder tree",
    )
    parser.add_argument(
        "--checkpoint",
        metavar="PATH",
        help="local checkpoint file (overrides DI_CHECKPOINT_PATH and selects the file backend)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _print_page(index: int, page: Page) -> None:
    for record in page.files:
        print(record.listing_line())


def run_list(config: AppConfig) -> int:
    interrupt = InterruptSignal()
    controller = crawl_controller_from_config(config, interrupt, on_page=_print_page)
    # Ctrl-C keeps its default behaviour until the OAuth consent flow is done.
    interrupt.install()
    outcome = controller.run()
    if outcome is CrawlOutcome.DRAINED:
        logger.info("[run_list] stopped on request; rerun --list to resume")
    return EXIT_OK


def run_overview(config: AppConfig) -> int:
    pages = checkpoint_store_from_config(config).load()
    print_overview(build_index(pages), unowned_min_bytes=config.unowned_min_bytes)
    return EXIT_OK


def run_tree(config: AppConfig) -> int:
    pages = checkpoint_store_from_config(config).load()
    build_and_print(build_index(pages), min_bytes=config.tree_min_bytes)
    return EXIT_OK


_MODES = {
    "list": run_list,
    "overview": run_overview,
    "tree": run_tree,
}


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the selected mode and return the process exit code."""
    args = build_parser().parse_args(argv)
    if args.mode is None:
        return EXIT_OK

    try:
        config = load_config()
        if args.checkpoint:
            config = replace(config, checkpoint_backend="file", checkpoint_path=args.checkpoint)
        logging.basicConfig(
            level=config.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
            stream=sys.stderr,
        )
        return _MODES[args.mode](config)
    except FATAL_ERRORS as exc:
        logger.error("[main] %s failed; error:%s", args.mode, exc)
        print(f"drive-inventory: error: {exc}", file=sys.stderr)
        return EXIT_FATAL
