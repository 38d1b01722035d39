"""Token endpoints: sign-in, refresh and logout."""

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, Request, status

from tokengate.schemas.auth import (
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    SignInRequest,
    TokenResponse,
)
from tokengate.services.auth_gate import AuthenticationGate, AuthOutcome
from tokengate.services.identity import CredentialVerifier, Principal
from tokengate.services.revocation import RevocationStore, StoreUnavailableError
from tokengate.services.token_codec import MalformedTokenError, TokenCodec
from tokengate.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# --- Dependencies ---


def get_token_lifecycle(request: Request) -> TokenLifecycleManager:
    return request.app.state.token_lifecycle


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_revocation_store(request: Request) -> RevocationStore:
    return request.app.state.revocation_store


def get_credential_verifier(request: Request) -> CredentialVerifier:
    return request.app.state.credential_verifier


def get_auth_gate(request: Request) -> AuthenticationGate:
    return request.app.state.auth_gate


def get_current_principal(request: Request) -> Principal:
    """Dependency for endpoints that need an authenticated caller."""
    outcome: AuthOutcome | None = getattr(request.state, "auth", None)
    if outcome is None or not outcome.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return outcome.principal


def require_authority(authority: str) -> Callable[..., Principal]:
    """Dependency factory: caller must hold ``authority``."""

    def _require(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_authority(authority):
            logger.warning(f"Access denied for {principal.subject}: missing {authority}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return principal

    return _require


# --- Endpoints ---


@router.post("/sign-in", response_model=TokenResponse)
async def sign_in(
    request: SignInRequest,
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    lifecycle: TokenLifecycleManager = Depends(get_token_lifecycle),
) -> TokenResponse:
    """Authenticate with username and password and get a token pair."""
    principal = await verifier.verify_credentials(request.username, request.password)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    pair = lifecycle.issue_initial_pair(principal)
    logger.info(f"User signed in: {principal.subject}")
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=int(lifecycle.access_ttl.total_seconds()),
    )


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    response_model_exclude_none=True,
)
async def refresh_tokens(
    request: RefreshRequest,
    lifecycle: TokenLifecycleManager = Depends(get_token_lifecycle),
    gate: AuthenticationGate = Depends(get_auth_gate),
) -> RefreshResponse:
    """Exchange a refresh token for a new access token.

    A new refresh token is included only when the presented one was close
    to expiry. Refresh tokens revoked at logout are refused.
    """
    if await gate.is_revoked(request.refresh_token):
        logger.warning("Refresh rejected: token has been revoked")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    result = await lifecycle.refresh(request.refresh_token)
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )
    return RefreshResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=int(lifecycle.access_ttl.total_seconds()),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: LogoutRequest,
    codec: TokenCodec = Depends(get_token_codec),
    store: RevocationStore = Depends(get_revocation_store),
) -> MessageResponse:
    """Revoke the presented tokens for the rest of their lifetime.

    Tokens that are not signed by this service are ignored, as are tokens
    that have already expired.
    """
    revoked = 0
    for token in (request.access_token, request.refresh_token):
        if not token:
            continue
        try:
            remaining = codec.extract_claim(token, lambda claims: claims.remaining(codec.now()))
        except MalformedTokenError:
            logger.warning("Logout skipped a token that failed to decode")
            continue

        try:
            if await store.revoke(token, remaining):
                revoked += 1
        except StoreUnavailableError as e:
            logger.error(f"Logout could not revoke token: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Logout temporarily unavailable",
            ) from e

    logger.info(f"Logout revoked {revoked} token(s)")
    return MessageResponse(message="Logged out successfully")
