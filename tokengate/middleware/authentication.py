"""Bearer-token authentication middleware.

Runs the AuthenticationGate once per request and stores the outcome on
``request.state.auth``. Requests without a credential continue as
anonymous; route dependencies decide whether that is enough. Requests
with a credential that cannot be used are stopped here with a generic
401 so callers learn nothing about why the token was refused.
"""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from tokengate.services.auth_gate import AuthenticationGate, AuthOutcome
from tokengate.services.token_codec import TokenFailure

logger = logging.getLogger(__name__)

# Credential endpoints read their tokens from the body and must stay
# reachable with an expired or revoked Authorization header.
EXCLUDED_PATHS = [
    "/auth/sign-in",
    "/auth/refresh",
    "/auth/logout",
    "/health",
]

UNAUTHORIZED_BODY = {"detail": "Unauthorized"}


def is_excluded_path(path: str) -> bool:
    """Exact or segment-boundary match against EXCLUDED_PATHS."""
    return any(path == excluded or path.startswith(excluded + "/") for excluded in EXCLUDED_PATHS)


def unauthorized_response() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=UNAUTHORIZED_BODY,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Establish the request's authentication context."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # CORS preflight never carries credentials
        if request.method == "OPTIONS" or is_excluded_path(request.url.path):
            request.state.auth = AuthOutcome.anonymous()
            return await call_next(request)

        gate: AuthenticationGate = request.app.state.auth_gate
        outcome = await gate.authenticate(request.headers.get("Authorization"))
        request.state.auth = outcome

        if outcome.is_rejected:
            level = logging.DEBUG if outcome.failure is TokenFailure.EXPIRED else logging.WARNING
            logger.log(
                level,
                f"Rejected credential for {request.method} {request.url.path} "
                f"({outcome.failure.value})",
            )
            return unauthorized_response()

        return await call_next(request)
