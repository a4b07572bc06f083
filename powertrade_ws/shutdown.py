"""Cooperative shutdown flag shared between signal handling and the session loop."""

from __future__ import annotations

import asyncio
import logging
import signal

_LOGGER = logging.getLogger(__name__)

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class ShutdownSignal:
    """Set-once flag observed by the supervisors between read cycles.

    Setting it again is a no-op. It never interrupts an in-flight read; it
    only cuts short the delays the supervisors wait out between cycles and
    between attempts.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def set(self) -> None:
        """Request shutdown."""
        if not self._event.is_set():
            _LOGGER.info("Shutdown requested")
            self._event.set()

    def is_set(self) -> bool:
        """Return True once shutdown has been requested."""
        return self._event.is_set()

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait up to ``timeout`` seconds for shutdown; return whether it is set."""
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True


def install_signal_handlers(
    shutdown: ShutdownSignal,
    loop: asyncio.AbstractEventLoop | None = None,
    signals: tuple[signal.Signals, ...] = SHUTDOWN_SIGNALS,
) -> list[signal.Signals]:
    """Route OS interrupt signals to ``shutdown`` on the running loop.

    Returns the signals that were installed; platforms without
    ``add_signal_handler`` support install none.
    """
    if loop is None:
        loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in signals:
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except (NotImplementedError, RuntimeError):
            _LOGGER.debug("Signal handler for %s not supported here", sig.name)
            continue
        installed.append(sig)
    return installed


def remove_signal_handlers(
    signals: list[signal.Signals],
    loop: asyncio.AbstractEventLoop | None = None,
) -> None:
    """Undo ``install_signal_handlers``."""
    if loop is None:
        loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)
