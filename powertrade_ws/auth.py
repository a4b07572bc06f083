"""Authentication token issuance for the Power.Trade handshake.

Every connection attempt presents a freshly signed ES256 JWT in the
``X-Power-Trade`` header. Tokens are minted on demand and never cached.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .errors import PowerTradeInvalidKey, PowerTradeSignFailure

_LOGGER = logging.getLogger(__name__)

TOKEN_ALGORITHM = "ES256"
TOKEN_ISSUER = "app.power.trade"
TOKEN_CLIENT = "api"
TOKEN_LIFETIME = 18000  # seconds, 5 hours


def mask_secret(value: str, visible: int = 8) -> str:
    """Return a log-safe form of a credential: a short prefix plus its length."""
    if not value:
        return "<empty>"
    if len(value) <= visible:
        return "*" * len(value)
    return f"{value[:visible]}...({len(value)} chars)"


@dataclass(frozen=True, slots=True)
class AuthToken:
    """Signed, time-bounded credential for one connection attempt."""

    value: str = field(repr=False)
    subject: str
    issued_at: int
    expires_at: int
    nonce: int

    @property
    def masked(self) -> str:
        """Truncated token, safe to surface in logs."""
        return mask_secret(self.value, visible=16)


def load_private_key(private_key_pem: str) -> ec.EllipticCurvePrivateKey:
    """Decode a PEM private key and check it is usable for ES256."""
    if not private_key_pem:
        raise PowerTradeInvalidKey("Failed to load private key: key is empty")
    try:
        key = serialization.load_pem_private_key(
            private_key_pem.encode(), password=None
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as err:
        raise PowerTradeInvalidKey(f"Failed to load private key: {err}") from err

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise PowerTradeInvalidKey(
            f"Failed to load private key: expected an EC key, got {type(key).__name__}"
        )
    if not isinstance(key.curve, ec.SECP256R1):
        raise PowerTradeInvalidKey(
            f"Failed to load private key: ES256 needs P-256, got {key.curve.name}"
        )
    return key


def build_claims(account_id: str, now: int) -> dict[str, Any]:
    """Build the claim set the venue expects for API clients."""
    return {
        "iat": now,
        "exp": now + TOKEN_LIFETIME,
        "client": TOKEN_CLIENT,
        "sub": account_id,
        # Second granularity; the server side expects a Unix timestamp here.
        "nonce": now,
        "iss": TOKEN_ISSUER,
    }


def issue_token(
    account_id: str,
    private_key_pem: str,
    *,
    clock: Callable[[], float] = time.time,
) -> AuthToken:
    """Sign a new authentication token for ``account_id``.

    Raises:
        PowerTradeInvalidKey: If the key does not decode as a P-256 EC key
        PowerTradeSignFailure: If signing fails
    """
    key = load_private_key(private_key_pem)
    now = int(clock())
    claims = build_claims(account_id, now)

    try:
        value = jwt.encode(claims, key, algorithm=TOKEN_ALGORITHM)
    except (jwt.PyJWTError, ValueError, TypeError) as err:
        raise PowerTradeSignFailure(f"Failed to sign JWT: {err}") from err

    token = AuthToken(
        value=value,
        subject=account_id,
        issued_at=claims["iat"],
        expires_at=claims["exp"],
        nonce=claims["nonce"],
    )
    _LOGGER.debug(
        "[%s] Token issued: %s (expires %d)",
        mask_secret(account_id),
        token.masked,
        token.expires_at,
    )
    return token
