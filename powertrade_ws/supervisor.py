"""Read loop driving one Power.Trade session from connect to close.

State machine:
    CONNECTING -> ACTIVE <-> RECONNECTING
    ACTIVE -> CLOSING -> TERMINATED
    CONNECTING / RECONNECTING -> TERMINATED (on failure, error raised)

The shutdown flag is checked at the top of every pass, before the read, so a
pass that has started always finishes (including any pong it owes).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from .auth import mask_secret
from .config import SessionConfig
from .errors import (
    PowerTradeClientError,
    PowerTradeConnectionError,
    PowerTradeReadTimeout,
    PowerTradeTransportError,
)
from .shutdown import ShutdownSignal
from .transport.connection import ConnectionManager, Frame, FrameKind

_LOGGER = logging.getLogger(__name__)

Connector = Callable[[SessionConfig], Awaitable[ConnectionManager]]


class SessionState(Enum):
    """Lifecycle states of a session supervisor."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    RECONNECTING = "reconnecting"
    CLOSING = "closing"
    TERMINATED = "terminated"


class SessionSupervisor:
    """Runs the read loop for a single session attempt.

    ``run()`` returns normally when the iteration cap is reached or shutdown
    is observed, and raises when connecting or reconnecting fails. Each
    instance is used for one attempt only.
    """

    def __init__(
        self,
        config: SessionConfig,
        shutdown: ShutdownSignal,
        *,
        connector: Connector | None = None,
    ) -> None:
        self._config = config
        self._shutdown = shutdown
        self._connector: Connector = connector or ConnectionManager.connect
        self._manager: ConnectionManager | None = None
        self._state = SessionState.CONNECTING
        self._iterations = 0
        self._tag = mask_secret(config.account_id)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def iterations(self) -> int:
        """Completed read passes."""
        return self._iterations

    async def run(self) -> None:
        """Connect, then read until the cap, shutdown or a fatal error."""
        self._set_state(SessionState.CONNECTING)
        try:
            self._manager = await self._connector(self._config)
        except PowerTradeClientError as err:
            _LOGGER.error(
                "[%s] Connection to %s failed: %s",
                self._tag,
                self._config.endpoint,
                err,
            )
            self._set_state(SessionState.TERMINATED)
            raise

        try:
            await self._run_active(self._manager)
        finally:
            await self._release()
            self._set_state(SessionState.TERMINATED)

    # -------------------------------------------------------------------------
    # Internal: state machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: SessionState) -> None:
        if self._state != state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self._tag, self._state.value, state.value
            )
            self._state = state

    async def _run_active(self, manager: ConnectionManager) -> None:
        self._set_state(SessionState.ACTIVE)
        _LOGGER.info("[%s] Session active for %s", self._tag, self._config.endpoint)
        cap = self._config.epoch_count

        while True:
            if self._shutdown.is_set():
                _LOGGER.info(
                    "[%s] Shutdown observed after %d of %d epochs",
                    self._tag,
                    self._iterations,
                    cap,
                )
                break

            if not await self._read_once(manager):
                await self._reconnect(manager)
            elif self._probe_due():
                await manager.send_control_with_retry(self._config.ping_attempts)

            self._iterations += 1
            if self._iterations >= cap:
                _LOGGER.info(
                    "[%s] Closing after count of %d epochs reached", self._tag, cap
                )
                break

            _LOGGER.debug(
                "[%s] Sleeping [%d of %d epochs]", self._tag, self._iterations, cap
            )
            await self._shutdown.wait(self._config.read_delay)

        self._set_state(SessionState.CLOSING)

    async def _read_once(self, manager: ConnectionManager) -> bool:
        """Run one read pass; return False when the connection must be replaced."""
        try:
            frame = await manager.read(self._config.read_timeout)
        except PowerTradeReadTimeout:
            _LOGGER.debug("[%s] No frame within read timeout", self._tag)
            return True
        except PowerTradeTransportError as err:
            _LOGGER.warning("[%s] Read failed: %s", self._tag, err)
            return False

        if frame.kind is FrameKind.PING:
            try:
                await manager.write(Frame(FrameKind.PONG, frame.payload))
            except PowerTradeTransportError as err:
                _LOGGER.warning("[%s] Failed to answer ping: %s", self._tag, err)
                return False
            _LOGGER.debug("[%s] Answered ping", self._tag)
        elif frame.kind is FrameKind.CLOSE:
            _LOGGER.warning(
                "[%s] Server closed the connection (code %s)",
                self._tag,
                frame.close_code,
            )
            return False
        elif not frame.is_empty:
            _LOGGER.info(
                "[%s] Received %s frame (%d bytes)",
                self._tag,
                frame.kind.value,
                frame.size,
            )
        return True

    def _probe_due(self) -> bool:
        every = self._config.ping_every
        return every > 0 and (self._iterations + 1) % every == 0

    async def _reconnect(self, manager: ConnectionManager) -> None:
        self._set_state(SessionState.RECONNECTING)
        try:
            await manager.reconnect()
        except PowerTradeConnectionError as err:
            _LOGGER.error(
                "[%s] Reconnect to %s failed: %s", self._tag, self._config.endpoint, err
            )
            raise
        self._set_state(SessionState.ACTIVE)

    async def _release(self) -> None:
        manager, self._manager = self._manager, None
        if manager is not None:
            await manager.close()
