"""Client error types for Power.Trade WebSocket sessions."""

from __future__ import annotations


class PowerTradeClientError(Exception):
    """Base error for Power.Trade client failures."""


class PowerTradeConfigError(PowerTradeClientError):
    """A configuration field failed validation."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid {field}: {reason}")
        self.field = field
        self.reason = reason


class PowerTradeAuthError(PowerTradeClientError):
    """Authentication token could not be produced."""


class PowerTradeInvalidKey(PowerTradeAuthError):
    """Private key is not a usable P-256 elliptic-curve key."""


class PowerTradeSignFailure(PowerTradeAuthError):
    """Signing the authentication token failed."""


class PowerTradeConnectionError(PowerTradeClientError):
    """Establishing the WebSocket connection failed."""


class PowerTradeEndpointError(PowerTradeConnectionError):
    """Endpoint URL could not be turned into a handshake request."""


class PowerTradeTokenError(PowerTradeConnectionError):
    """Token issuance failed while building the handshake request."""


class PowerTradeHeaderError(PowerTradeConnectionError):
    """Authentication header value is not a legal HTTP header value."""


class PowerTradeHandshakeError(PowerTradeConnectionError):
    """WebSocket handshake was rejected by the server."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status


class PowerTradeTimeout(PowerTradeConnectionError):
    """Timeout while connecting to the server."""


class PowerTradeRetryExhausted(PowerTradeConnectionError):
    """Liveness probe could not be sent within the allowed attempts."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Failed to send ping after {attempts} attempt(s)")
        self.attempts = attempts


class PowerTradeTransportError(PowerTradeClientError):
    """Reading from or writing to an open connection failed."""


class PowerTradeReadTimeout(PowerTradeTransportError):
    """No frame arrived within the read timeout."""


class PowerTradeRetryBudgetExhausted(PowerTradeClientError):
    """Every session attempt allowed by the retry budget failed."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Session failed after {attempts} attempt(s)")
        self.attempts = attempts
