# tokengate Services
from tokengate.services.auth_gate import AuthenticationGate, AuthOutcome, AuthStatus
from tokengate.services.identity import CredentialVerifier, IdentityLookup, Principal, Roles
from tokengate.services.revocation import (
    InMemoryRevocationStore,
    RedisRevocationStore,
    RevocationStore,
    StoreUnavailableError,
    create_revocation_store,
)
from tokengate.services.token_codec import (
    MalformedTokenError,
    SigningKey,
    TokenClaims,
    TokenCodec,
    TokenFailure,
    TokenType,
    VerificationResult,
)
from tokengate.services.token_lifecycle import RefreshResult, TokenLifecycleManager, TokenPair
from tokengate.services.users import UserDirectory

__all__ = [
    "AuthOutcome",
    "AuthStatus",
    "AuthenticationGate",
    "CredentialVerifier",
    "IdentityLookup",
    "InMemoryRevocationStore",
    "MalformedTokenError",
    "Principal",
    "RedisRevocationStore",
    "RefreshResult",
    "RevocationStore",
    "Roles",
    "SigningKey",
    "StoreUnavailableError",
    "TokenClaims",
    "TokenCodec",
    "TokenFailure",
    "TokenLifecycleManager",
    "TokenPair",
    "TokenType",
    "UserDirectory",
    "VerificationResult",
    "create_revocation_store",
]
