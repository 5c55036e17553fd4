from __future__ import annotations

import os
import signal
import sys
import threading
from types import FrameType
from typing import Callable, Optional

from loguru import logger

# Type alias for handler callbacks
CleanupFn = Callable[[], None]


class SignalHandler:
    """Install exit-related signal handlers and flush clients before exiting."""

    #: Exit signals we *always* hook
    _BASE_SIGNALS = [signal.SIGINT, signal.SIGTERM]
    if hasattr(signal, "SIGHUP"):
        _BASE_SIGNALS.append(signal.SIGHUP)

    #: Windows-specific mapping (Ctrl-Break, log-off, shutdown)
    if os.name == "nt" and hasattr(signal, "SIGBREAK"):
        _BASE_SIGNALS.append(signal.SIGBREAK)  # type: ignore[attr-defined]

    def __init__(self, install: bool = True) -> None:
        self._cleanup_fns: list[CleanupFn] = []
        self.signal_received = False
        self.received_signal: str | None = None
        if install:
            self._install_handlers()

    def register_cleanup(self, fn: CleanupFn) -> None:
        self._cleanup_fns.append(fn)

    def unregister_cleanup(self, fn: CleanupFn) -> None:
        if fn in self._cleanup_fns:
            self._cleanup_fns.remove(fn)

    def _install_handlers(self) -> None:
        for sig in self._BASE_SIGNALS:
            try:
                signal.signal(sig, self._handle_exit)  # type: ignore[arg-type]
            except (ValueError, OSError):  # not allowed in threads / rare OSes
                logger.warning(f"Could not hook signal {sig}")

    def _handle_exit(self, signum: int, frame: FrameType | None) -> None:  # noqa: ANN001
        if self.signal_received:
            sys.exit(0)
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name}, flushing analytics events before exit")
        self.signal_received = True
        self.received_signal = signal_name

        # Cleanups may unregister themselves while running
        for fn in list(self._cleanup_fns):
            try:
                fn()
            except Exception:  # noqa: BLE001
                logger.exception(f"Cleanup function {fn} raised")

        sys.exit(0)

    def is_signal_received(self) -> bool:
        return self.signal_received


_shared_handler: Optional[SignalHandler] = None
_shared_lock = threading.Lock()


def get_signal_handler() -> SignalHandler:
    """Return the process-wide signal handler, installing it on first use.

    Every pipeline registers its cleanup here, so one signal flushes all of them.
    """
    global _shared_handler
    with _shared_lock:
        if _shared_handler is None:
            _shared_handler = SignalHandler()
        return _shared_handler
