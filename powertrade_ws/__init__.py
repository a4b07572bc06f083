"""Authenticated, self-healing WebSocket session client for Power.Trade."""

__version__ = "0.1.0"

from .auth import AuthToken, issue_token, mask_secret
from .config import SessionConfig
from .errors import (
    PowerTradeAuthError,
    PowerTradeClientError,
    PowerTradeConfigError,
    PowerTradeConnectionError,
    PowerTradeEndpointError,
    PowerTradeHandshakeError,
    PowerTradeHeaderError,
    PowerTradeInvalidKey,
    PowerTradeReadTimeout,
    PowerTradeRetryBudgetExhausted,
    PowerTradeRetryExhausted,
    PowerTradeSignFailure,
    PowerTradeTimeout,
    PowerTradeTokenError,
    PowerTradeTransportError,
)
from .retry import RetrySupervisor, run_with_retry
from .shutdown import ShutdownSignal, install_signal_handlers
from .supervisor import SessionState, SessionSupervisor
from .transport import ConnectionManager, Frame, FrameKind, connect_websocket

__all__ = [
    "AuthToken",
    "ConnectionManager",
    "Frame",
    "FrameKind",
    "PowerTradeAuthError",
    "PowerTradeClientError",
    "PowerTradeConfigError",
    "PowerTradeConnectionError",
    "PowerTradeEndpointError",
    "PowerTradeHandshakeError",
    "PowerTradeHeaderError",
    "PowerTradeInvalidKey",
    "PowerTradeReadTimeout",
    "PowerTradeRetryBudgetExhausted",
    "PowerTradeRetryExhausted",
    "PowerTradeSignFailure",
    "PowerTradeTimeout",
    "PowerTradeTokenError",
    "PowerTradeTransportError",
    "RetrySupervisor",
    "SessionConfig",
    "SessionState",
    "SessionSupervisor",
    "ShutdownSignal",
    "__version__",
    "connect_websocket",
    "install_signal_handlers",
    "issue_token",
    "mask_secret",
    "run_with_retry",
]
