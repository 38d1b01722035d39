"""Token issuance and refresh rotation."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from operator import attrgetter

from tokengate.services.identity import IdentityLookup, Principal
from tokengate.services.token_codec import (
    MalformedTokenError,
    TokenCodec,
    TokenFailure,
    TokenType,
)

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_TTL = timedelta(seconds=180)
DEFAULT_REFRESH_TTL = timedelta(days=30)
DEFAULT_ROTATION_THRESHOLD = timedelta(hours=24)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of a refresh.

    ``refresh_token`` is set only when the presented refresh token was close
    enough to expiry to be rotated; otherwise the caller keeps using it.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    failure: TokenFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def rotated(self) -> bool:
        return self.refresh_token is not None


class TokenLifecycleManager:
    """Issue access/refresh pairs and exchange refresh tokens for access tokens.

    Revocation is not consulted here; it gates the request path only.
    """

    def __init__(
        self,
        codec: TokenCodec,
        identities: IdentityLookup,
        *,
        access_ttl: timedelta = DEFAULT_ACCESS_TTL,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TTL,
        rotation_threshold: timedelta = DEFAULT_ROTATION_THRESHOLD,
    ):
        self.codec = codec
        self.identities = identities
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.rotation_threshold = rotation_threshold

    def issue_access_token(self, principal: Principal) -> str:
        return self.codec.issue(
            principal.subject,
            TokenType.ACCESS,
            self.access_ttl,
            {"authorities": list(principal.authorities)},
        )

    def issue_refresh_token(self, principal: Principal) -> str:
        # No authorities: they are re-resolved from the identity store on refresh
        return self.codec.issue(principal.subject, TokenType.REFRESH, self.refresh_ttl)

    def issue_initial_pair(self, principal: Principal) -> TokenPair:
        """Issue a fresh access/refresh pair at sign-in."""
        return TokenPair(
            access_token=self.issue_access_token(principal),
            refresh_token=self.issue_refresh_token(principal),
        )

    def is_expiring_soon(self, refresh_token: str) -> bool:
        """True when less than the rotation threshold of validity remains."""
        try:
            expires_at = self.codec.extract_claim(refresh_token, attrgetter("expires_at"))
        except MalformedTokenError:
            return True
        return expires_at - self.codec.now() < self.rotation_threshold

    async def refresh(self, refresh_token: str) -> RefreshResult:
        """Exchange a refresh token for a new access token.

        Access tokens are refused here even when their signature and expiry
        are fine.
        """
        result = self.codec.verify(refresh_token)
        if not result.ok:
            logger.info(f"Refresh rejected: {result.failure.value}")
            return RefreshResult(failure=result.failure)

        claims = result.claims
        if claims.token_type is not TokenType.REFRESH:
            logger.warning(f"Refresh rejected: {claims.token_type.value} token presented")
            return RefreshResult(failure=TokenFailure.WRONG_TOKEN_TYPE)

        principal = await self.identities.resolve_by_subject(claims.subject)
        if principal is None:
            logger.warning("Refresh rejected: subject no longer resolvable")
            return RefreshResult(failure=TokenFailure.IDENTITY_NOT_FOUND)

        access_token = self.issue_access_token(principal)
        new_refresh_token = None
        if self.is_expiring_soon(refresh_token):
            new_refresh_token = self.issue_refresh_token(principal)
            logger.info(f"Rotated refresh token for {principal.subject}")

        return RefreshResult(access_token=access_token, refresh_token=new_refresh_token)
