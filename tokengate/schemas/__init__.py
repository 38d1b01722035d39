# tokengate Schemas
from tokengate.schemas.auth import (
    LogoutRequest,
    MessageResponse,
    PrincipalResponse,
    RefreshRequest,
    RefreshResponse,
    SignInRequest,
    TokenResponse,
)

__all__ = [
    "LogoutRequest",
    "MessageResponse",
    "PrincipalResponse",
    "RefreshRequest",
    "RefreshResponse",
    "SignInRequest",
    "TokenResponse",
]
