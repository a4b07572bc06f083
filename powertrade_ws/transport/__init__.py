"""Transport layer for the Power.Trade session.

Components:
- ws: authenticated WebSocket handshake
- connection: single-connection manager with frame I/O and reconnect
"""

from .connection import ConnectionManager, Frame, FrameKind
from .ws import AUTH_HEADER, build_auth_headers, connect_websocket

__all__ = [
    "AUTH_HEADER",
    "ConnectionManager",
    "Frame",
    "FrameKind",
    "build_auth_headers",
    "connect_websocket",
]
