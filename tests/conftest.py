"""Pytest configuration and fixtures for powertrade_ws tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from functools import partial
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from aiohttp import WSMsgType
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from powertrade_ws.config import SessionConfig
from powertrade_ws.shutdown import ShutdownSignal
from powertrade_ws.transport.connection import ConnectionManager

ENDPOINT = "wss://example.test/ws"
ACCOUNT_ID = "acct1"


def pem_for(key: Any) -> str:
    """Serialize a private key as unencrypted PKCS#8 PEM."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def text(data: str) -> aiohttp.WSMessage:
    return aiohttp.WSMessage(WSMsgType.TEXT, data, None)


def binary(data: bytes) -> aiohttp.WSMessage:
    return aiohttp.WSMessage(WSMsgType.BINARY, data, None)


def ping(data: bytes = b"hb") -> aiohttp.WSMessage:
    return aiohttp.WSMessage(WSMsgType.PING, data, None)


def pong(data: bytes = b"hb") -> aiohttp.WSMessage:
    return aiohttp.WSMessage(WSMsgType.PONG, data, None)


def close(code: int = 1001, reason: str = "going away") -> aiohttp.WSMessage:
    return aiohttp.WSMessage(WSMsgType.CLOSE, code, reason)


class FakeWebSocket:
    """Scripted stand-in for aiohttp.ClientWebSocketResponse.

    ``messages`` are returned by ``receive()`` in order. An exception item is
    raised instead, and a callable item is called (for side effects such as
    setting the shutdown flag) and its return value used. Once the script is
    exhausted the socket reports CLOSED.
    """

    def __init__(self, messages: list[Any] | None = None, *, fail_sends: bool = False):
        self._messages = list(messages or [])
        self.fail_sends = fail_sends
        self.closed = False
        self.sent: list[tuple[str, Any]] = []
        self.receive_calls = 0
        self.close_calls = 0

    async def receive(self, timeout: float | None = None) -> aiohttp.WSMessage:
        self.receive_calls += 1
        if not self._messages:
            return aiohttp.WSMessage(WSMsgType.CLOSED, None, None)
        item = self._messages.pop(0)
        if callable(item):
            item = item()
        if isinstance(item, BaseException):
            raise item
        return item

    async def _send(self, kind: str, data: Any) -> None:
        if self.fail_sends:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append((kind, data))

    async def send_str(self, data: str) -> None:
        await self._send("text", data)

    async def send_bytes(self, data: bytes) -> None:
        await self._send("binary", data)

    async def ping(self, message: bytes = b"") -> None:
        await self._send("ping", message)

    async def pong(self, message: bytes = b"") -> None:
        await self._send("pong", message)

    async def close(self, *, code: int = 1000, message: bytes = b"") -> bool:
        self.close_calls += 1
        self.closed = True
        return True

    def sent_kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    """P-256 key generated once per test run."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def private_key_pem(ec_key: ec.EllipticCurvePrivateKey) -> str:
    return pem_for(ec_key)


@pytest.fixture
def raw_config(private_key_pem: str) -> dict[str, Any]:
    """Valid, unvalidated settings as an external collaborator would supply."""
    return {
        "endpoint": ENDPOINT,
        "account_id": ACCOUNT_ID,
        "private_key": private_key_pem,
        "epoch_count": 3,
        "read_delay": 0.001,
        "max_retries": 2,
        "retry_delay": 0,
    }


@pytest.fixture
def make_config(raw_config: dict[str, Any]) -> Callable[..., SessionConfig]:
    """Build a SessionConfig from the valid defaults plus overrides."""

    def _make(**overrides: Any) -> SessionConfig:
        return SessionConfig.from_collaborator({**raw_config, **overrides})

    return _make


@pytest.fixture
def config(make_config: Callable[..., SessionConfig]) -> SessionConfig:
    return make_config()


@pytest.fixture
def shutdown() -> ShutdownSignal:
    return ShutdownSignal()


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    session = MagicMock(spec=aiohttp.ClientSession)
    session.closed = False
    session.close = AsyncMock()
    return session


@pytest.fixture
def connect_ws() -> Iterator[AsyncMock]:
    """Patch the handshake; set ``side_effect`` to a list of FakeWebSockets."""
    with patch(
        "powertrade_ws.transport.connection.connect_websocket",
        new_callable=AsyncMock,
    ) as mock_connect:
        yield mock_connect


@pytest.fixture
def connector(mock_session: MagicMock) -> Callable[..., Any]:
    """ConnectionManager.connect bound to the mock aiohttp session."""
    return partial(ConnectionManager.connect, session=mock_session)
