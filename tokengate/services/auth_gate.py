"""Per-request authentication checkpoint.

The gate turns an Authorization header into one of three outcomes:

- ANONYMOUS: no bearer credential was presented. Downstream authorization
  decides whether the endpoint needs one.
- REJECTED: a credential was presented but cannot be used (bad signature,
  expired, revoked, wrong type, unknown subject). The HTTP layer answers
  401 without saying why.
- AUTHENTICATED: the credential is a valid, unrevoked access token for a
  known subject.

Revocation lookups are bounded by a timeout. If the store cannot answer
in time the gate logs a warning and fails open, so an unreachable shared
store cannot take down every authenticated endpoint.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from tokengate.services.identity import IdentityLookup, Principal
from tokengate.services.revocation import RevocationStore, StoreUnavailableError
from tokengate.services.token_codec import TokenCodec, TokenFailure, TokenType

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


class AuthStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AuthOutcome:
    status: AuthStatus
    principal: Principal | None = None
    failure: TokenFailure | None = None

    @classmethod
    def anonymous(cls) -> "AuthOutcome":
        return cls(status=AuthStatus.ANONYMOUS)

    @classmethod
    def rejected(cls, failure: TokenFailure) -> "AuthOutcome":
        return cls(status=AuthStatus.REJECTED, failure=failure)

    @classmethod
    def authenticated(cls, principal: Principal) -> "AuthOutcome":
        return cls(status=AuthStatus.AUTHENTICATED, principal=principal)

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED

    @property
    def is_rejected(self) -> bool:
        return self.status is AuthStatus.REJECTED


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not header:
        return None
    if not header.lower().startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


class AuthenticationGate:
    """Verify a bearer token once per request and resolve its principal."""

    def __init__(
        self,
        codec: TokenCodec,
        revocations: RevocationStore,
        identities: IdentityLookup,
        *,
        revocation_timeout: float = 0.5,
    ):
        self.codec = codec
        self.revocations = revocations
        self.identities = identities
        self.revocation_timeout = revocation_timeout

    async def authenticate(self, authorization: str | None) -> AuthOutcome:
        token = extract_bearer_token(authorization)
        if token is None:
            return AuthOutcome.anonymous()

        result = self.codec.verify(token)
        if not result.ok:
            return AuthOutcome.rejected(result.failure)

        if await self.is_revoked(token):
            return AuthOutcome.rejected(TokenFailure.REVOKED)

        claims = result.claims
        if claims.token_type is not TokenType.ACCESS:
            return AuthOutcome.rejected(TokenFailure.WRONG_TOKEN_TYPE)

        principal = await self.identities.resolve_by_subject(claims.subject)
        if principal is None:
            return AuthOutcome.rejected(TokenFailure.IDENTITY_NOT_FOUND)

        logger.debug(f"Authenticated request for {principal.subject}")
        return AuthOutcome.authenticated(principal)

    async def is_revoked(self, token: str) -> bool:
        """Revocation check with fail-open on store outage or timeout."""
        try:
            return await asyncio.wait_for(
                self.revocations.is_revoked(token), timeout=self.revocation_timeout
            )
        except TimeoutError:
            logger.warning(
                f"Revocation check failed ({TokenFailure.STORE_UNAVAILABLE.value}): "
                f"timed out after {self.revocation_timeout:.3f}s; allowing token"
            )
        except StoreUnavailableError as e:
            logger.warning(
                f"Revocation check failed ({TokenFailure.STORE_UNAVAILABLE.value}): {e}; "
                "allowing token"
            )
        return False
