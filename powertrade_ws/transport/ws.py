"""WebSocket handshake helper for the Power.Trade venue."""

from __future__ import annotations

import asyncio

import aiohttp

from ..errors import (
    PowerTradeConnectionError,
    PowerTradeEndpointError,
    PowerTradeHandshakeError,
    PowerTradeHeaderError,
    PowerTradeTimeout,
)

AUTH_HEADER = "X-Power-Trade"


def build_auth_headers(token: str) -> dict[str, str]:
    """Build the handshake headers carrying the signed token."""
    if not token or not token.isascii() or not token.isprintable():
        raise PowerTradeHeaderError(f"Invalid {AUTH_HEADER} header value")
    return {AUTH_HEADER: token}


async def connect_websocket(
    session: aiohttp.ClientSession,
    url: str,
    *,
    token: str,
    timeout: float = 15.0,
) -> aiohttp.ClientWebSocketResponse:
    """Open an authenticated WebSocket to ``url``.

    Automatic pong replies are disabled so ping frames reach the caller.

    Args:
        session: aiohttp session used for the upgrade request
        url: ws:// or wss:// endpoint
        token: Compact signed token for the auth header
        timeout: Bound on TCP, TLS and upgrade together (seconds)
    """
    headers = build_auth_headers(token)
    try:
        return await asyncio.wait_for(
            session.ws_connect(
                url,
                headers=headers,
                autoping=False,
                max_msg_size=0,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise PowerTradeTimeout("WebSocket connection timed out") from err
    except aiohttp.InvalidURL as err:
        raise PowerTradeEndpointError(f"Invalid server URL: {url}") from err
    except aiohttp.WSServerHandshakeError as err:
        raise PowerTradeHandshakeError(
            err.status, f"WebSocket handshake failed: HTTP {err.status}"
        ) from err
    except (OSError, aiohttp.ClientError) as err:
        raise PowerTradeConnectionError(f"WebSocket connection failed: {err}") from err
