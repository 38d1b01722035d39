"""Identity types shared by the token services and the identity store."""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class Roles(str, Enum):
    """Authorities granted to accounts."""

    ROLE_USER = "ROLE_USER"
    ROLE_ADMIN = "ROLE_ADMIN"


@dataclass(frozen=True)
class Principal:
    """Resolved identity and authority set for a token subject.

    Lives for the duration of one request; never persisted by the token
    services.
    """

    subject: str
    authorities: tuple[str, ...] = ()

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities


class IdentityLookup(Protocol):
    async def resolve_by_subject(self, subject: str) -> Principal | None: ...


class CredentialVerifier(Protocol):
    async def verify_credentials(self, username: str, password: str) -> Principal | None: ...
