"""Graceful-drain request delivered from an OS signal to the crawl loop."""

from __future__ import annotations

import signal
import threading
from types import FrameType

DRAIN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class InterruptSignal:
    """Single-slot flag set by a signal handler and polled between page fetches.

    The handler only sets the flag, so an in-flight fetch always completes
    before the crawl loop sees the request. The first signal also restores
    the default handlers, leaving a second signal to the OS default.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        """Non-blocking poll."""
        return self._event.is_set()

    def install(self, signals: tuple[signal.Signals, ...] = DRAIN_SIGNALS) -> None:
        """Register the drain handler for ``signals``. Must run on the main thread."""

        def _handler(signum: int, frame: FrameType | None) -> None:
            for sig in signals:
                signal.signal(sig, signal.SIG_DFL)
            self._event.set()

        for sig in signals:
            signal.signal(sig, _handler)
