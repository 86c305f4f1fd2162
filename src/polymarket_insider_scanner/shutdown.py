"""Signal-driven shutdown for the scanner process.

Usage:
    ```python
    async with GracefulShutdown() as shutdown:
        shutdown.register_cleanup(scheduler.close)
        await scheduler.start()
        await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_TIMEOUT = 30.0

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)

CleanupCallback = Callable[[], Awaitable[None] | None]


class GracefulShutdown:
    """Traps SIGTERM/SIGINT and runs cleanup callbacks on exit.

    A first signal sets the shutdown event; a second one exits the process
    immediately.
    """

    def __init__(self, cleanup_timeout: float = DEFAULT_CLEANUP_TIMEOUT) -> None:
        """Initialize the handler.

        Args:
            cleanup_timeout: Seconds allowed for each cleanup callback.
        """
        self._cleanup_timeout = cleanup_timeout
        self._event = asyncio.Event()
        self._requested = False
        self._callbacks: list[CleanupCallback] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._requested

    def register_cleanup(self, callback: CleanupCallback) -> None:
        """Register a sync or async callable to run on exit (in order)."""
        self._callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if not self._requested:
            self._requested = True
            logger.info("Shutdown requested")
        self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        await self._event.wait()

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._requested:
            logger.warning("Received %s again, forcing exit", sig.name)
            sys.exit(128 + sig.value)
        self._requested = True
        logger.info("Received %s, shutting down...", sig.name)
        self._event.set()

    def install_signal_handlers(self) -> None:
        """Trap the shutdown signals on the running loop."""
        self._loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
                self._installed.append(sig)
            except (NotImplementedError, ValueError, OSError) as e:
                # add_signal_handler is unavailable on Windows event loops
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Restore default signal handling."""
        if self._loop is None:
            return
        for sig in self._installed:
            with suppress(ValueError, OSError):
                self._loop.remove_signal_handler(sig)
        self._installed.clear()

    async def run_cleanup_callbacks(self) -> None:
        """Run registered callbacks; a failing callback does not stop the rest."""
        for callback in self._callbacks:
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await asyncio.wait_for(result, timeout=self._cleanup_timeout)
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
