"""Tests for the per-request authentication gate."""

import asyncio
import logging
from datetime import timedelta

import pytest

from tests.conftest import past_clock
from tokengate.services.auth_gate import AuthenticationGate, AuthStatus, extract_bearer_token
from tokengate.services.revocation import RevocationStore, StoreUnavailableError
from tokengate.services.token_codec import TokenCodec, TokenFailure, TokenType


class UnavailableStore(RevocationStore):
    """Store whose backend is down."""

    async def _insert(self, key, ttl_ms):
        raise StoreUnavailableError("connection refused")

    async def _contains(self, key):
        raise StoreUnavailableError("connection refused")

    async def ping(self):
        return False


class SlowStore(RevocationStore):
    """Store that answers after a delay."""

    def __init__(self, delay: float):
        self.delay = delay

    async def _insert(self, key, ttl_ms):
        return None

    async def _contains(self, key):
        await asyncio.sleep(self.delay)
        return True

    async def ping(self):
        return True


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc", "abc"),
            ("BEARER abc", "abc"),
            ("Bearer   abc  ", "abc"),
            (None, None),
            ("", None),
            ("Bearer ", None),
            ("Bearer    ", None),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearerabc", None),
        ],
    )
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestAuthenticate:
    """Tests for AuthenticationGate.authenticate."""

    @pytest.mark.asyncio
    async def test_valid_access_token(self, gate, alice_pair):
        outcome = await gate.authenticate(f"Bearer {alice_pair.access_token}")

        assert outcome.is_authenticated
        assert outcome.principal.subject == "alice"
        assert outcome.principal.has_authority("ROLE_USER")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer "])
    async def test_no_bearer_credential_is_anonymous(self, gate, header):
        outcome = await gate.authenticate(header)

        assert outcome.status is AuthStatus.ANONYMOUS
        assert not outcome.is_rejected
        assert outcome.principal is None

    @pytest.mark.asyncio
    async def test_revoked_access_token(self, gate, codec, revocation_store, alice_pair):
        """A token revoked at logout is rejected although still unexpired."""
        remaining = codec.extract_claim(
            alice_pair.access_token, lambda c: c.remaining(codec.now())
        )
        assert timedelta(seconds=170) < remaining <= timedelta(seconds=180)
        await revocation_store.revoke(alice_pair.access_token, remaining)

        outcome = await gate.authenticate(f"Bearer {alice_pair.access_token}")

        assert outcome.is_rejected
        assert outcome.failure is TokenFailure.REVOKED

    @pytest.mark.asyncio
    async def test_revocation_does_not_affect_other_tokens(
        self, gate, lifecycle, revocation_store, alice, alice_pair
    ):
        await revocation_store.revoke(alice_pair.access_token, timedelta(seconds=180))
        other = lifecycle.issue_access_token(alice)

        outcome = await gate.authenticate(f"Bearer {other}")
        assert outcome.is_authenticated

    @pytest.mark.asyncio
    async def test_garbage_token(self, gate):
        outcome = await gate.authenticate("Bearer not-a-token")
        assert outcome.failure is TokenFailure.MALFORMED

    @pytest.mark.asyncio
    async def test_expired_token(self, gate, signing_key, alice):
        old_codec = TokenCodec(signing_key, clock=past_clock(timedelta(hours=1)))
        token = old_codec.issue("alice", TokenType.ACCESS, timedelta(seconds=180))

        outcome = await gate.authenticate(f"Bearer {token}")
        assert outcome.failure is TokenFailure.EXPIRED

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self, gate, alice_pair):
        outcome = await gate.authenticate(f"Bearer {alice_pair.refresh_token}")
        assert outcome.failure is TokenFailure.WRONG_TOKEN_TYPE

    @pytest.mark.asyncio
    async def test_revocation_checked_before_type(self, gate, revocation_store, alice_pair):
        await revocation_store.revoke(alice_pair.refresh_token, timedelta(days=1))

        outcome = await gate.authenticate(f"Bearer {alice_pair.refresh_token}")
        assert outcome.failure is TokenFailure.REVOKED

    @pytest.mark.asyncio
    async def test_unknown_subject(self, gate, directory, alice_pair):
        directory.users.pop("alice")

        outcome = await gate.authenticate(f"Bearer {alice_pair.access_token}")
        assert outcome.failure is TokenFailure.IDENTITY_NOT_FOUND

    @pytest.mark.asyncio
    async def test_authorities_come_from_identity_store(self, gate, directory, alice_pair):
        """Roles removed after sign-in are gone on the next request."""
        directory.users["alice"]["authorities"] = ()

        outcome = await gate.authenticate(f"Bearer {alice_pair.access_token}")
        assert outcome.is_authenticated
        assert outcome.principal.authorities == ()


class TestRevocationFailOpen:
    """The gate admits tokens when the store cannot answer."""

    @pytest.mark.asyncio
    async def test_store_unavailable(self, codec, directory, alice_pair, caplog):
        gate = AuthenticationGate(codec, UnavailableStore(), directory)

        with caplog.at_level(logging.WARNING, logger="tokengate.services.auth_gate"):
            outcome = await gate.authenticate(f"Bearer {alice_pair.access_token}")

        assert outcome.is_authenticated
        assert "store_unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_store_timeout(self, codec, directory, alice_pair, caplog):
        gate = AuthenticationGate(
            codec, SlowStore(delay=1.0), directory, revocation_timeout=0.05
        )

        with caplog.at_level(logging.WARNING, logger="tokengate.services.auth_gate"):
            outcome = await gate.authenticate(f"Bearer {alice_pair.access_token}")

        assert outcome.is_authenticated
        assert "timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_answer_within_timeout_is_used(self, codec, directory, alice_pair):
        gate = AuthenticationGate(
            codec, SlowStore(delay=0.01), directory, revocation_timeout=1.0
        )

        outcome = await gate.authenticate(f"Bearer {alice_pair.access_token}")
        assert outcome.failure is TokenFailure.REVOKED

    @pytest.mark.asyncio
    async def test_invalid_token_still_rejected(self, codec, directory):
        """Fail-open never admits a token that fails verification."""
        gate = AuthenticationGate(codec, UnavailableStore(), directory)

        outcome = await gate.authenticate("Bearer not-a-token")
        assert outcome.failure is TokenFailure.MALFORMED
