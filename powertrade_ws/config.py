"""Validated session configuration."""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any
from urllib.parse import urlsplit

from .auth import mask_secret
from .errors import PowerTradeConfigError

_LOGGER = logging.getLogger(__name__)

WEBSOCKET_SCHEMES = frozenset({"ws", "wss"})

# Environment variable names, keyed by config field.
ENV_VARS: dict[str, str] = {
    "endpoint": "PT_SERVER_URL",
    "account_id": "PT_API_KEY",
    "private_key": "PT_API_SECRET",
    "epoch_count": "PT_EPOCH_COUNT",
    "read_delay": "PT_WS_SLEEP",
    "max_retries": "PT_MAX_RETRIES",
    "retry_delay": "PT_RETRY_DELAY",
    "connect_timeout": "PT_CONNECT_TIMEOUT",
    "read_timeout": "PT_READ_TIMEOUT",
    "ping_every": "PT_PING_EVERY",
    "ping_attempts": "PT_PING_ATTEMPTS",
}


def _text(name: str, value: Any) -> str:
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise PowerTradeConfigError(name, "must be a string")
    if not value.strip():
        raise PowerTradeConfigError(name, "must not be empty")
    return value


def _endpoint(name: str, value: Any) -> str:
    value = _text(name, value).strip()
    try:
        parts = urlsplit(value)
        hostname, _port = parts.hostname, parts.port
    except ValueError as err:
        raise PowerTradeConfigError(name, f"not a valid URL ({err})") from err
    if not parts.scheme or not hostname:
        raise PowerTradeConfigError(name, f"not an absolute URL: {value!r}")
    if parts.scheme.lower() not in WEBSOCKET_SCHEMES:
        raise PowerTradeConfigError(
            name, f"scheme must be ws or wss, got {parts.scheme!r}"
        )
    return value


def _pem(name: str, value: Any) -> str:
    value = _text(name, value)
    if "-----BEGIN " not in value or "-----END " not in value:
        raise PowerTradeConfigError(name, "not a PEM-encoded key")
    return value


def _integer(minimum: int) -> Callable[[str, Any], int]:
    def check(name: str, value: Any) -> int:
        if value is None or value == "":
            raise PowerTradeConfigError(name, "is required")
        if isinstance(value, bool):
            raise PowerTradeConfigError(name, "must be an integer")
        if isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError as err:
                raise PowerTradeConfigError(name, "must be an integer") from err
        elif isinstance(value, float) and value.is_integer():
            value = int(value)
        elif not isinstance(value, int):
            raise PowerTradeConfigError(name, "must be an integer")
        if value < minimum:
            reason = "must be positive" if minimum > 0 else "must not be negative"
            raise PowerTradeConfigError(name, f"{reason}, got {value}")
        return value

    return check


def _seconds(*, positive: bool, optional: bool = False) -> Callable[[str, Any], float | None]:
    def check(name: str, value: Any) -> float | None:
        if value is None or value == "":
            if optional:
                return None
            raise PowerTradeConfigError(name, "is required")
        if isinstance(value, bool):
            raise PowerTradeConfigError(name, "must be a number of seconds")
        try:
            seconds = float(value)
        except (TypeError, ValueError) as err:
            raise PowerTradeConfigError(name, "must be a number of seconds") from err
        if not math.isfinite(seconds):
            raise PowerTradeConfigError(name, "must be finite")
        if positive and seconds <= 0:
            raise PowerTradeConfigError(name, f"must be positive, got {value}")
        if seconds < 0:
            raise PowerTradeConfigError(name, f"must not be negative, got {value}")
        return seconds

    return check


# Validation order matters: the first failing field is the one reported.
_RULES: tuple[tuple[str, Callable[[str, Any], Any]], ...] = (
    ("endpoint", _endpoint),
    ("account_id", _text),
    ("private_key", _pem),
    ("epoch_count", _integer(1)),
    ("read_delay", _seconds(positive=True)),
    ("max_retries", _integer(0)),
    ("retry_delay", _seconds(positive=False)),
    ("connect_timeout", _seconds(positive=True)),
    ("read_timeout", _seconds(positive=True, optional=True)),
    ("ping_every", _integer(0)),
    ("ping_attempts", _integer(1)),
)


@dataclass(frozen=True)
class SessionConfig:
    """Immutable, validated configuration for a Power.Trade session.

    Every field is checked when the instance is built, in a fixed order, and
    the first violation raises ``PowerTradeConfigError``. Nothing downstream
    validates again.

    Attributes:
        endpoint: WebSocket URL of the venue (ws:// or wss://)
        account_id: API key identifying the account; the token subject
        private_key: PEM-encoded P-256 private key used to sign tokens
        epoch_count: Read cycles before the session closes itself
        read_delay: Pause between read cycles (seconds)
        max_retries: Whole-session restarts allowed after a failure
        retry_delay: Pause between session restarts (seconds)
        connect_timeout: Bound on each handshake (seconds)
        read_timeout: Bound on each read, None to wait indefinitely
        ping_every: Send a liveness probe every N cycles, 0 to disable
        ping_attempts: Send attempts allowed per liveness probe
    """

    endpoint: str
    account_id: str
    private_key: str = field(repr=False)
    epoch_count: int
    read_delay: float
    max_retries: int = 5
    retry_delay: float = 5.0
    connect_timeout: float = 15.0
    read_timeout: float | None = None
    ping_every: int = 0
    ping_attempts: int = 3

    def __post_init__(self) -> None:
        for name, check in _RULES:
            object.__setattr__(self, name, check(name, getattr(self, name)))

    @classmethod
    def from_collaborator(cls, raw: Mapping[str, Any]) -> SessionConfig:
        """Build a config from an unvalidated mapping of field values.

        Missing optional fields take their defaults; missing required fields
        are reported as empty. Unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        values = {name: value for name, value in raw.items() if name in known}
        for name in ("endpoint", "account_id", "private_key", "epoch_count", "read_delay"):
            values.setdefault(name, None)
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SessionConfig:
        """Build a config from ``PT_*`` environment variables."""
        if environ is None:
            environ = os.environ
        raw: dict[str, Any] = {}
        for name, var in ENV_VARS.items():
            value = environ.get(var)
            if value is not None and value != "":
                raw[name] = value
        config = cls.from_collaborator(raw)
        _LOGGER.info("Configuration loaded: %s", config.describe())
        return config

    def describe(self) -> str:
        """One-line summary with credentials masked."""
        return (
            f"server={self.endpoint}, account={mask_secret(self.account_id)}, "
            f"epoch_count={self.epoch_count}, read_delay={self.read_delay}s, "
            f"max_retries={self.max_retries}"
        )
