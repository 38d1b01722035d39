"""Database-backed identity lookup and credential verification."""

import logging
from datetime import UTC, datetime

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokengate.models.user_account import UserAccount
from tokengate.services.identity import Principal, Roles

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when the username is unknown so both paths cost the same
_DUMMY_HASH = ph.hash("tokengate-dummy-password")


class UserAlreadyExistsError(Exception):
    """Username is taken."""

    pass


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


def to_principal(user: UserAccount) -> Principal:
    return Principal(subject=user.username, authorities=tuple(user.authorities or ()))


class UserDirectory:
    """Resolve token subjects and verify sign-in credentials.

    Opens a short-lived session per call so it can be used from middleware
    as well as from request handlers.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def _get_by_username(self, session: AsyncSession, username: str) -> UserAccount | None:
        result = await session.execute(select(UserAccount).where(UserAccount.username == username))
        return result.scalar_one_or_none()

    async def resolve_by_subject(self, subject: str) -> Principal | None:
        """Principal for an active account, None otherwise."""
        async with self.session_maker() as session:
            user = await self._get_by_username(session, subject)
        if user is None or not user.is_active:
            return None
        return to_principal(user)

    async def verify_credentials(self, username: str, password: str) -> Principal | None:
        """Check a username/password pair.

        Unknown users, inactive users and wrong passwords all return None so
        callers cannot tell them apart.
        """
        async with self.session_maker() as session:
            user = await self._get_by_username(session, username)
            if user is None:
                verify_password(password, _DUMMY_HASH)
                return None
            if not verify_password(password, user.password_hash) or not user.is_active:
                return None

            principal = to_principal(user)
            user.last_login_at = datetime.now(UTC)
            await session.commit()
            return principal

    async def create_user(
        self,
        username: str,
        password: str,
        authorities: list[str] | None = None,
    ) -> Principal:
        """Provision an account (used by seeding scripts and tests)."""
        async with self.session_maker() as session:
            if await self._get_by_username(session, username) is not None:
                raise UserAlreadyExistsError(f"User with username {username} already exists")
            user = UserAccount(
                username=username,
                password_hash=hash_password(password),
                authorities=authorities or [Roles.ROLE_USER.value],
            )
            principal = to_principal(user)
            session.add(user)
            await session.commit()
            logger.info(f"Created user: {username}")
            return principal
