"""Revoked-token store with self-expiring entries.

A token is kept in the store only for as long as it could otherwise still
authenticate: the TTL passed to ``revoke`` is the token's remaining
validity, so the store never grows beyond the set of tokens revoked before
their natural expiry.

Two backends share one interface:
- InMemoryRevocationStore: process-local, for single-worker deployments
  and tests.
- RedisRevocationStore: shared across workers via Redis key expiry.

Entries are keyed by a SHA-256 fingerprint of the token value so the
store never holds usable credentials.
"""

import asyncio
import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import timedelta

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """The revocation backend could not answer."""

    pass


def token_fingerprint(token: str) -> str:
    """Stable key for a token value."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationStore(ABC):
    """Deny-list of token values, each entry expiring with its token."""

    async def revoke(self, token: str, remaining_ttl: timedelta) -> bool:
        """Deny ``token`` for ``remaining_ttl``.

        Returns False without touching the backend when the token has no
        validity left. Revoking an already revoked token is harmless.
        """
        ttl_ms = int(remaining_ttl.total_seconds() * 1000)
        if ttl_ms <= 0:
            return False
        await self._insert(token_fingerprint(token), ttl_ms)
        return True

    async def is_revoked(self, token: str) -> bool:
        """Check whether ``token`` is on the deny-list."""
        return await self._contains(token_fingerprint(token))

    @abstractmethod
    async def _insert(self, key: str, ttl_ms: int) -> None: ...

    @abstractmethod
    async def _contains(self, key: str) -> bool: ...

    @abstractmethod
    async def ping(self) -> bool:
        """Whether the backend is reachable."""

    async def cleanup_expired(self) -> int:
        """Drop entries past their expiry. Returns count removed."""
        return 0

    async def close(self) -> None:
        return None


class InMemoryRevocationStore(RevocationStore):
    """Process-local store.

    Entries auto-expire on read and via cleanup_expired(). A lock guards
    the dict so the store is safe from threads as well as tasks.
    """

    def __init__(self, clock=time.monotonic):
        self._entries: dict[str, float] = {}  # fingerprint -> deadline
        self._lock = threading.Lock()
        self._clock = clock

    async def _insert(self, key: str, ttl_ms: int) -> None:
        deadline = self._clock() + ttl_ms / 1000
        with self._lock:
            # Keep the later deadline if the token is revoked twice
            self._entries[key] = max(deadline, self._entries.get(key, deadline))

    async def _contains(self, key: str) -> bool:
        with self._lock:
            deadline = self._entries.get(key)
            if deadline is None:
                return False
            if self._clock() >= deadline:
                del self._entries[key]
                return False
            return True

    async def ping(self) -> bool:
        return True

    async def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, deadline in self._entries.items() if now >= deadline]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisRevocationStore(RevocationStore):
    """Shared store backed by Redis key expiry.

    Writes go to the primary and reads use the same connection pool, so a
    revoke followed by a check on the same key sees the write.
    """

    DEFAULT_SOCKET_TIMEOUT = 1.0

    def __init__(
        self,
        client: aioredis.Redis,
        *,
        key_prefix: str = "tokengate:revoked:",
    ):
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        redis_url: str,
        *,
        key_prefix: str = "tokengate:revoked:",
        socket_timeout: float = DEFAULT_SOCKET_TIMEOUT,
    ) -> "RedisRevocationStore":
        client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, key_prefix=key_prefix)

    def _key(self, fingerprint: str) -> str:
        return f"{self.key_prefix}{fingerprint}"

    async def _insert(self, key: str, ttl_ms: int) -> None:
        try:
            await self.client.set(self._key(key), "1", px=ttl_ms)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError(f"Redis write failed: {e}") from e

    async def _contains(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(self._key(key)))
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError(f"Redis read failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Revocation store ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()


def create_revocation_store(
    redis_url: str | None,
    *,
    key_prefix: str = "tokengate:revoked:",
    socket_timeout: float = RedisRevocationStore.DEFAULT_SOCKET_TIMEOUT,
) -> RevocationStore:
    """Pick the backend from configuration."""
    if redis_url:
        logger.info("Using Redis revocation store")
        return RedisRevocationStore.from_url(
            redis_url, key_prefix=key_prefix, socket_timeout=socket_timeout
        )
    logger.info("Using in-memory revocation store (single process only)")
    return InMemoryRevocationStore()
