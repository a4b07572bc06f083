"""Single authenticated WebSocket connection with in-place reconnect."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import aiohttp
from aiohttp import WSMsgType

from ..auth import issue_token, mask_secret
from ..errors import (
    PowerTradeAuthError,
    PowerTradeConnectionError,
    PowerTradeReadTimeout,
    PowerTradeRetryExhausted,
    PowerTradeTokenError,
    PowerTradeTransportError,
)
from .ws import connect_websocket

if TYPE_CHECKING:
    from ..config import SessionConfig

_LOGGER = logging.getLogger(__name__)

PROBE_PAYLOAD = b"\x01\x02\x03"
CLOSE_TIMEOUT = 2.0
PROBE_RECONNECT_PAUSE = 1.0


class FrameKind(Enum):
    """Kinds of WebSocket frames exposed to the session loop."""

    DATA = "data"
    PING = "ping"
    PONG = "pong"
    CLOSE = "close"


@dataclass(frozen=True, slots=True)
class Frame:
    """One WebSocket frame; the payload is passed through uninterpreted."""

    kind: FrameKind
    payload: bytes | str = b""
    close_code: int | None = None

    @property
    def size(self) -> int:
        """Payload length in bytes."""
        if isinstance(self.payload, str):
            return len(self.payload.encode())
        return len(self.payload)

    @property
    def is_empty(self) -> bool:
        return self.size == 0


class ConnectionManager:
    """Owns at most one open WebSocket to the configured endpoint.

    Usage:
        manager = await ConnectionManager.connect(config)
        frame = await manager.read()
        await manager.write(Frame(FrameKind.PONG, frame.payload))
        await manager.reconnect()
        await manager.close()

    Every connect or reconnect mints a new token. Nothing is retried here
    except ``send_control_with_retry``.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reconnect_count = 0
        self._tag = mask_secret(config.account_id)

    @classmethod
    async def connect(
        cls,
        config: SessionConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> ConnectionManager:
        """Create a manager and open its connection."""
        manager = cls(config, session=session)
        try:
            await manager._open()
        except BaseException:
            await manager.close()
            raise
        return manager

    async def __aenter__(self) -> ConnectionManager:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def connected(self) -> bool:
        """True while an open connection is held."""
        return self._ws is not None and not self._ws.closed

    @property
    def reconnect_count(self) -> int:
        """Number of successful reconnects over the manager's lifetime."""
        return self._reconnect_count

    def describe(self) -> str:
        """Log-safe summary of the connection."""
        return (
            f"Connected to {self._config.endpoint} with API key {self._tag}, "
            f"max retries: {self._config.max_retries}"
        )

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _open(self) -> None:
        """Mint a token, perform the handshake and store the connection."""
        try:
            token = issue_token(self._config.account_id, self._config.private_key)
        except PowerTradeAuthError as err:
            raise PowerTradeTokenError(f"Token issuance failed: {err}") from err

        _LOGGER.info(
            "[%s] Connecting to %s with token %s",
            self._tag,
            self._config.endpoint,
            token.masked,
        )
        self._ws = await connect_websocket(
            self._ensure_session(),
            self._config.endpoint,
            token=token.value,
            timeout=self._config.connect_timeout,
        )
        _LOGGER.info("[%s] Connected to %s", self._tag, self._config.endpoint)

    async def _discard(self) -> None:
        """Drop the current connection, closing it on a best-effort basis."""
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await asyncio.wait_for(ws.close(), timeout=CLOSE_TIMEOUT)
        except (TimeoutError, OSError, aiohttp.ClientError) as err:
            _LOGGER.debug("[%s] Ignoring error closing old connection: %s", self._tag, err)

    async def reconnect(self) -> None:
        """Replace the current connection with a freshly authenticated one.

        On failure no connection is held and the error propagates.
        """
        _LOGGER.info("[%s] Attempting to reconnect to %s", self._tag, self._config.endpoint)
        await self._discard()
        await self._open()
        self._reconnect_count += 1

    async def close(self) -> None:
        """Close the connection and any session this manager created."""
        await self._discard()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    # -------------------------------------------------------------------------
    # Frame I/O
    # -------------------------------------------------------------------------

    def _require_ws(self) -> aiohttp.ClientWebSocketResponse:
        if self._ws is None:
            raise PowerTradeTransportError("WebSocket is not connected")
        return self._ws

    async def read(self, timeout: float | None = None) -> Frame:
        """Wait for the next frame.

        Raises:
            PowerTradeReadTimeout: If ``timeout`` expires first
            PowerTradeTransportError: If the connection is gone or failed
        """
        ws = self._require_ws()
        try:
            msg = await ws.receive(timeout=timeout)
        except TimeoutError as err:
            raise PowerTradeReadTimeout(f"No frame within {timeout}s") from err
        except (OSError, aiohttp.ClientError) as err:
            raise PowerTradeTransportError(f"WebSocket read failed: {err}") from err
        return self._normalize_message(msg)

    @staticmethod
    def _normalize_message(msg: aiohttp.WSMessage) -> Frame:
        """Map an aiohttp message onto a Frame, raising for dead transports."""
        if msg.type is WSMsgType.TEXT or msg.type is WSMsgType.BINARY:
            return Frame(FrameKind.DATA, msg.data if msg.data is not None else b"")
        if msg.type is WSMsgType.PING:
            return Frame(FrameKind.PING, msg.data or b"")
        if msg.type is WSMsgType.PONG:
            return Frame(FrameKind.PONG, msg.data or b"")
        if msg.type is WSMsgType.CLOSE:
            return Frame(FrameKind.CLOSE, msg.extra or "", close_code=msg.data)
        if msg.type in {WSMsgType.CLOSING, WSMsgType.CLOSED}:
            raise PowerTradeTransportError("WebSocket connection closed")
        if msg.type is WSMsgType.ERROR:
            raise PowerTradeTransportError(f"WebSocket error: {msg.data}")
        raise PowerTradeTransportError(f"Unexpected WebSocket message type: {msg.type}")

    async def write(self, frame: Frame) -> None:
        """Send one frame. No retry, no queueing."""
        ws = self._require_ws()
        if ws.closed:
            raise PowerTradeTransportError("WebSocket is closed")
        try:
            if frame.kind is FrameKind.DATA:
                if isinstance(frame.payload, str):
                    await ws.send_str(frame.payload)
                else:
                    await ws.send_bytes(frame.payload)
            elif frame.kind is FrameKind.PING:
                await ws.ping(_as_bytes(frame.payload))
            elif frame.kind is FrameKind.PONG:
                await ws.pong(_as_bytes(frame.payload))
            else:
                await ws.close(
                    code=frame.close_code or aiohttp.WSCloseCode.OK,
                    message=_as_bytes(frame.payload),
                )
        except (OSError, aiohttp.ClientError) as err:
            raise PowerTradeTransportError(f"WebSocket write failed: {err}") from err

    async def send_control_with_retry(self, max_attempts: int) -> None:
        """Send a ping probe, reconnecting between failed attempts.

        Raises:
            PowerTradeRetryExhausted: If all ``max_attempts`` sends fail
        """
        attempts = 0
        while attempts < max_attempts:
            try:
                await self.write(Frame(FrameKind.PING, PROBE_PAYLOAD))
            except PowerTradeTransportError as err:
                attempts += 1
                _LOGGER.warning(
                    "[%s] Failed to send ping (attempt %d of %d): %s",
                    self._tag,
                    attempts,
                    max_attempts,
                    err,
                )
                if attempts >= max_attempts:
                    break
                try:
                    await self.reconnect()
                except PowerTradeConnectionError as reconnect_err:
                    _LOGGER.warning("[%s] Failed to reconnect: %s", self._tag, reconnect_err)
                    await asyncio.sleep(PROBE_RECONNECT_PAUSE)
                else:
                    _LOGGER.info("[%s] Reconnected, retrying ping", self._tag)
                continue
            _LOGGER.debug("[%s] Ping sent", self._tag)
            return
        raise PowerTradeRetryExhausted(attempts)


def _as_bytes(payload: bytes | str) -> bytes:
    return payload.encode() if isinstance(payload, str) else payload
