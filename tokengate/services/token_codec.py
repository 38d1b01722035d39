"""Signed token encoding and verification.

TokenCodec is the only component that touches the signing key. It issues
compact HS-signed JWTs and reports verification outcomes as values; it
never looks at revocation state.
"""

import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, TypeVar

import jwt
from jwt.exceptions import (
    InvalidAlgorithmError,
    InvalidSignatureError,
    PyJWTError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Claims written by the codec itself; callers may not override them
RESERVED_CLAIMS = frozenset({"sub", "iat", "exp", "jti", "token_type"})
_REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti", "token_type"]


class TokenType(str, Enum):
    """Kind of bearer credential carried in the token_type claim."""

    ACCESS = "access"
    REFRESH = "refresh"


class TokenFailure(str, Enum):
    """Why a credential could not be used."""

    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    WRONG_TOKEN_TYPE = "wrong_token_type"
    REVOKED = "revoked"
    IDENTITY_NOT_FOUND = "identity_not_found"
    STORE_UNAVAILABLE = "store_unavailable"


class MalformedTokenError(Exception):
    """Token could not be decoded into claims."""

    pass


@dataclass(frozen=True)
class SigningKey:
    """Symmetric signing key.

    A generated key is valid for the lifetime of the process only: it is
    never persisted, so a restart invalidates every outstanding token.
    """

    secret: bytes = field(repr=False)
    algorithm: str = "HS256"

    @classmethod
    def generate(cls, algorithm: str = "HS256") -> "SigningKey":
        """Create a random key (64 bytes covers HS512's minimum)."""
        return cls(secret=secrets.token_bytes(64), algorithm=algorithm)

    @classmethod
    def from_secret(cls, secret: str | None, algorithm: str = "HS256") -> "SigningKey":
        """Use a configured secret, or generate one if none is configured."""
        if not secret:
            logger.info("No JWT secret configured; generated a per-process signing key")
            return cls.generate(algorithm)
        return cls(secret=secret.encode("utf-8"), algorithm=algorithm)


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, typed view of a token's claims."""

    subject: str
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime
    token_id: str
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenClaims":
        try:
            return cls(
                subject=str(payload["sub"]),
                token_type=TokenType(payload["token_type"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
                token_id=str(payload["jti"]),
                extra={k: v for k, v in payload.items() if k not in RESERVED_CLAIMS},
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise MalformedTokenError(f"Invalid claims: {e}") from e

    @property
    def authorities(self) -> tuple[str, ...]:
        return tuple(self.extra.get("authorities") or ())

    def remaining(self, now: datetime | None = None) -> timedelta:
        """Validity left at ``now`` (negative once expired)."""
        return self.expires_at - (now or datetime.now(UTC))


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of TokenCodec.verify: claims on success, a failure otherwise."""

    claims: TokenClaims | None = None
    failure: TokenFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, claims: TokenClaims) -> "VerificationResult":
        return cls(claims=claims)

    @classmethod
    def failed(cls, failure: TokenFailure) -> "VerificationResult":
        return cls(failure=failure)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenCodec:
    """Issue and verify signed tokens with a single in-memory key."""

    def __init__(
        self,
        signing_key: SigningKey,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._key = signing_key
        self._clock = clock

    @property
    def algorithm(self) -> str:
        return self._key.algorithm

    def now(self) -> datetime:
        return self._clock()

    def issue(
        self,
        subject: str,
        token_type: TokenType,
        validity: timedelta,
        extra_claims: Mapping[str, Any] | None = None,
    ) -> str:
        """Sign a new token valid from now for ``validity``."""
        extra = dict(extra_claims or {})
        clashing = RESERVED_CLAIMS.intersection(extra)
        if clashing:
            raise ValueError(f"Reserved claims cannot be overridden: {sorted(clashing)}")

        issued_at = self._clock()
        payload = {
            **extra,
            "sub": subject,
            "iat": issued_at,
            "exp": issued_at + validity,
            "jti": secrets.token_hex(16),
            "token_type": TokenType(token_type).value,
        }
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(jwt.encode(payload, self._key.secret, algorithm=self._key.algorithm))

    def verify(self, token: str | None) -> VerificationResult:
        """Check signature, structure and expiry.

        Expiry is judged against the codec's clock, the one used to issue.
        """
        if not token:
            return VerificationResult.failed(TokenFailure.MALFORMED)
        try:
            payload = self._decode(token)
        except (InvalidSignatureError, InvalidAlgorithmError):
            return VerificationResult.failed(TokenFailure.INVALID_SIGNATURE)
        except PyJWTError as e:
            logger.debug(f"Token failed to decode: {e}")
            return VerificationResult.failed(TokenFailure.MALFORMED)

        try:
            claims = TokenClaims.from_payload(payload)
        except MalformedTokenError as e:
            logger.debug(f"Token claims rejected: {e}")
            return VerificationResult.failed(TokenFailure.MALFORMED)

        if claims.expires_at <= self._clock():
            return VerificationResult.failed(TokenFailure.EXPIRED)
        return VerificationResult.success(claims)

    def extract_claim(self, token: str, selector: Callable[[TokenClaims], T]) -> T:
        """Read a claim from a correctly signed token, expired or not.

        Raises MalformedTokenError when the token cannot be decoded or its
        signature does not match.
        """
        if not token:
            raise MalformedTokenError("Empty token")
        try:
            payload = self._decode(token)
        except PyJWTError as e:
            raise MalformedTokenError(f"Invalid token: {e}") from e
        return selector(TokenClaims.from_payload(payload))

    def _decode(self, token: str) -> dict[str, Any]:
        # Time claims are checked against self._clock by the caller
        return jwt.decode(
            token,
            self._key.secret,
            algorithms=[self._key.algorithm],
            options={"require": _REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False},
        )
