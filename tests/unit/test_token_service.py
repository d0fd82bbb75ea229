"""Unit tests for TokenManager.

Expiry is driven by an injected clock rather than sleeping.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from gatheryourdeals.errors import (
    InvalidClientSecret,
    InvalidOrExpiredToken,
    UnknownClient,
)
from gatheryourdeals.models.oauth_client import OAuthClient
from gatheryourdeals.repositories.memory import InMemoryTokenStore
from gatheryourdeals.services.token_service import (
    DEFAULT_ACCESS_TOKEN_TTL,
    DEFAULT_REFRESH_TOKEN_TTL,
    TokenManager,
)


async def _add_client(clients, client_id="app1", secret=""):
    await clients.create_client(
        OAuthClient(id=client_id, secret=secret, created_at=datetime.now(timezone.utc))
    )


class _GatedTokenStore(InMemoryTokenStore):
    """In-memory store whose writes wait for ``release`` before applying."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.pending = []

    async def save(self, record):
        self.pending.append(record)
        self.entered.set()
        await self.release.wait()
        await super().save(record)

    async def rotate(self, old, new):
        self.pending.append(new)
        self.entered.set()
        await self.release.wait()
        return await super().rotate(old, new)


async def _stored_halves(store, record):
    return (
        await store.get_by_access(record.access_token) is not None,
        await store.get_by_refresh(record.refresh_token) is not None,
    )


@pytest.fixture
def manager(clients, tokens, clock):
    return TokenManager(clients, tokens, clock=clock)


# ---------------------------------------------------------------------------
# authenticate_client
# ---------------------------------------------------------------------------

class TestAuthenticateClient:
    """Tests for TokenManager.authenticate_client."""

    @pytest.mark.asyncio
    async def test_public_client_without_secret(self, manager, clients):
        await _add_client(clients)

        client = await manager.authenticate_client("app1")
        assert client.id == "app1"
        assert client.is_public is True

    @pytest.mark.asyncio
    async def test_unknown_client(self, manager):
        with pytest.raises(UnknownClient):
            await manager.authenticate_client("nope")

    @pytest.mark.asyncio
    async def test_confidential_client_requires_matching_secret(self, manager, clients):
        await _add_client(clients, secret="s3cret")

        assert (await manager.authenticate_client("app1", "s3cret")).id == "app1"
        with pytest.raises(InvalidClientSecret):
            await manager.authenticate_client("app1", "wrong")
        with pytest.raises(InvalidClientSecret):
            await manager.authenticate_client("app1")

    @pytest.mark.asyncio
    async def test_secret_error_is_an_unknown_client(self, manager, clients):
        """Callers that only catch UnknownClient still reject bad secrets."""
        await _add_client(clients, secret="s3cret")

        with pytest.raises(UnknownClient):
            await manager.authenticate_client("app1", "wrong")


# ---------------------------------------------------------------------------
# issue / resolve_access
# ---------------------------------------------------------------------------

class TestIssue:
    """Tests for TokenManager.issue and resolve_access."""

    @pytest.mark.asyncio
    async def test_issued_access_token_resolves_to_user(self, manager, clients):
        await _add_client(clients)
        user_id = uuid4()

        record = await manager.issue(user_id, "app1")

        assert await manager.resolve_access(record.access_token) == user_id

    @pytest.mark.asyncio
    async def test_default_lifetimes(self, manager, clients, clock):
        await _add_client(clients)

        record = await manager.issue(uuid4(), "app1")

        assert record.access_expires_at == clock.now + DEFAULT_ACCESS_TOKEN_TTL
        assert record.refresh_expires_at == clock.now + DEFAULT_REFRESH_TOKEN_TTL
        assert manager.access_ttl_seconds == 3600

    @pytest.mark.asyncio
    async def test_tokens_are_unique_and_distinct(self, manager, clients):
        await _add_client(clients)

        first = await manager.issue(uuid4(), "app1")
        second = await manager.issue(uuid4(), "app1")

        assert first.access_token != first.refresh_token
        assert len({first.access_token, second.access_token,
                    first.refresh_token, second.refresh_token}) == 4

    @pytest.mark.asyncio
    async def test_unknown_client_rejected(self, manager, tokens):
        tokens.save = AsyncMock()

        with pytest.raises(UnknownClient):
            await manager.issue(uuid4(), "nope")

        tokens.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_access_token(self, manager):
        with pytest.raises(InvalidOrExpiredToken):
            await manager.resolve_access("not-a-token")

    @pytest.mark.asyncio
    async def test_access_token_expires(self, manager, clients, clock):
        await _add_client(clients)
        record = await manager.issue(uuid4(), "app1")

        clock.advance(seconds=3599)
        await manager.resolve_access(record.access_token)

        clock.advance(seconds=1)
        with pytest.raises(InvalidOrExpiredToken):
            await manager.resolve_access(record.access_token)

    @pytest.mark.asyncio
    async def test_custom_lifetimes(self, clients, tokens, clock):
        manager = TokenManager(
            clients, tokens,
            access_ttl=timedelta(seconds=5),
            refresh_ttl=timedelta(seconds=10),
            clock=clock,
        )
        await _add_client(clients)
        record = await manager.issue(uuid4(), "app1")

        clock.advance(seconds=5)
        with pytest.raises(InvalidOrExpiredToken):
            await manager.resolve_access(record.access_token)
        assert manager.access_ttl_seconds == 5


# ---------------------------------------------------------------------------
# revoke
# ---------------------------------------------------------------------------

class TestRevoke:
    """Tests for TokenManager.revoke."""

    @pytest.mark.asyncio
    async def test_revoked_token_no_longer_resolves(self, manager, clients):
        await _add_client(clients)
        record = await manager.issue(uuid4(), "app1")

        await manager.revoke(record.access_token)

        with pytest.raises(InvalidOrExpiredToken):
            await manager.resolve_access(record.access_token)

    @pytest.mark.asyncio
    async def test_revoking_unknown_token_is_a_no_op(self, manager):
        await manager.revoke("not-a-token")


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------

class TestRefresh:
    """Tests for TokenManager.refresh (rotation)."""

    @pytest.mark.asyncio
    async def test_returns_new_pair_for_same_user_and_client(self, manager, clients):
        await _add_client(clients)
        user_id = uuid4()
        old = await manager.issue(user_id, "app1")

        new = await manager.refresh(old.refresh_token)

        assert new.user_id == user_id
        assert new.client_id == "app1"
        assert new.access_token != old.access_token
        assert new.refresh_token != old.refresh_token
        assert await manager.resolve_access(new.access_token) == user_id

    @pytest.mark.asyncio
    async def test_old_tokens_invalidated(self, manager, clients):
        await _add_client(clients)
        old = await manager.issue(uuid4(), "app1")

        await manager.refresh(old.refresh_token)

        with pytest.raises(InvalidOrExpiredToken):
            await manager.resolve_access(old.access_token)
        with pytest.raises(InvalidOrExpiredToken):
            await manager.refresh(old.refresh_token)

    @pytest.mark.asyncio
    async def test_unknown_refresh_token(self, manager):
        with pytest.raises(InvalidOrExpiredToken):
            await manager.refresh("not-a-token")

    @pytest.mark.asyncio
    async def test_expired_refresh_token(self, manager, clients, clock):
        await _add_client(clients)
        old = await manager.issue(uuid4(), "app1")

        clock.advance(hours=168)

        with pytest.raises(InvalidOrExpiredToken):
            await manager.refresh(old.refresh_token)

    @pytest.mark.asyncio
    async def test_refresh_works_after_access_expiry(self, manager, clients, clock):
        await _add_client(clients)
        old = await manager.issue(uuid4(), "app1")

        clock.advance(hours=2)

        new = await manager.refresh(old.refresh_token)
        assert new.access_expires_at == clock.now + DEFAULT_ACCESS_TOKEN_TTL

    @pytest.mark.asyncio
    async def test_other_client_cannot_use_token(self, manager, clients):
        await _add_client(clients, "app1")
        await _add_client(clients, "app2")
        old = await manager.issue(uuid4(), "app1")

        with pytest.raises(InvalidOrExpiredToken):
            await manager.refresh(old.refresh_token, client_id="app2")

        # The token was not consumed by the rejected attempt
        new = await manager.refresh(old.refresh_token, client_id="app1")
        assert new.client_id == "app1"

    @pytest.mark.asyncio
    async def test_revoked_client_cannot_refresh(self, manager, clients):
        await _add_client(clients)
        old = await manager.issue(uuid4(), "app1")

        await clients.delete_by_id("app1")

        with pytest.raises(UnknownClient):
            await manager.refresh(old.refresh_token)

    @pytest.mark.asyncio
    async def test_concurrent_refresh_has_one_winner(self, manager, clients):
        await _add_client(clients)
        old = await manager.issue(uuid4(), "app1")

        results = await asyncio.gather(
            *(manager.refresh(old.refresh_token) for _ in range(5)),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(e, InvalidOrExpiredToken) for e in losers)

    @pytest.mark.asyncio
    async def test_lost_rotation_reports_invalid_token(self, manager, clients, tokens):
        await _add_client(clients)
        old = await manager.issue(uuid4(), "app1")
        tokens.rotate = AsyncMock(return_value=False)

        with pytest.raises(InvalidOrExpiredToken):
            await manager.refresh(old.refresh_token)


# ---------------------------------------------------------------------------
# client revocation
# ---------------------------------------------------------------------------

class TestClientRevocation:
    """Revoking a client blocks new tokens but keeps issued ones."""

    @pytest.mark.asyncio
    async def test_blocks_new_issuance(self, manager, clients):
        await _add_client(clients)
        await clients.delete_by_id("app1")

        with pytest.raises(UnknownClient):
            await manager.issue(uuid4(), "app1")

    @pytest.mark.asyncio
    async def test_existing_access_tokens_stay_valid(self, manager, clients):
        await _add_client(clients)
        user_id = uuid4()
        record = await manager.issue(user_id, "app1")

        await clients.delete_by_id("app1")

        assert await manager.resolve_access(record.access_token) == user_id


# ---------------------------------------------------------------------------
# cancellation
# ---------------------------------------------------------------------------

class TestCancellation:
    """A cancelled issue or refresh leaves either nothing or the full pair."""

    @pytest.fixture
    def gated(self):
        return _GatedTokenStore()

    @pytest.fixture
    def gated_manager(self, clients, gated, clock):
        return TokenManager(clients, gated, clock=clock)

    @pytest.mark.asyncio
    async def test_cancelled_issue_stores_nothing(self, gated_manager, gated, clients):
        await _add_client(clients)

        task = asyncio.create_task(gated_manager.issue(uuid4(), "app1"))
        await gated.entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert await _stored_halves(gated, gated.pending[0]) == (False, False)

    @pytest.mark.asyncio
    async def test_issue_past_deadline_stores_nothing(self, gated_manager, gated, clients):
        await _add_client(clients)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(gated_manager.issue(uuid4(), "app1"), timeout=0.05)

        assert len(gated.pending) == 1
        assert await _stored_halves(gated, gated.pending[0]) == (False, False)

    @pytest.mark.asyncio
    async def test_cancelled_refresh_keeps_old_pair(self, gated_manager, gated, clients):
        await _add_client(clients)
        gated.release.set()
        old = await gated_manager.issue(uuid4(), "app1")
        gated.release.clear()
        gated.entered.clear()

        task = asyncio.create_task(gated_manager.refresh(old.refresh_token))
        await gated.entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert await _stored_halves(gated, gated.pending[-1]) == (False, False)
        assert await _stored_halves(gated, old) == (True, True)

        gated.release.set()
        new = await gated_manager.refresh(old.refresh_token)
        assert await gated_manager.resolve_access(new.access_token) == old.user_id

    @pytest.mark.asyncio
    async def test_refresh_past_deadline_keeps_old_pair(self, gated_manager, gated, clients):
        await _add_client(clients)
        gated.release.set()
        old = await gated_manager.issue(uuid4(), "app1")
        gated.release.clear()

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(gated_manager.refresh(old.refresh_token), timeout=0.05)

        assert await _stored_halves(gated, gated.pending[-1]) == (False, False)
        assert await gated_manager.resolve_access(old.access_token) == old.user_id
