"""Tests for the account service."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from civic_match.services.accounts import AccountService
from civic_match.services.supabase import SupabaseError


@pytest.fixture
def anon_client():
    client = MagicMock()
    client.auth.get_user = AsyncMock()
    return client


@pytest.fixture
def admin_client():
    client = MagicMock()
    client.auth.admin_delete_user = AsyncMock()
    return client


@pytest.fixture
def service(anon_client, admin_client):
    return AccountService(anon_client, admin_client)


class TestVerifyToken:
    """Tests for token verification."""

    @pytest.mark.asyncio
    async def test_valid_token_returns_user(self, service, anon_client):
        anon_client.auth.get_user.return_value = {"id": "user-1"}

        user = await service.verify_token("token")

        assert user == {"id": "user-1"}
        anon_client.auth.get_user.assert_awaited_once_with("token")

    @pytest.mark.asyncio
    async def test_rejected_token_returns_none(self, service, anon_client):
        anon_client.auth.get_user.side_effect = SupabaseError("invalid JWT", status_code=401)
        assert await service.verify_token("expired") is None

    @pytest.mark.asyncio
    async def test_user_without_id_returns_none(self, service, anon_client):
        anon_client.auth.get_user.return_value = {}
        assert await service.verify_token("token") is None


class TestDeleteAccount:
    """Tests for account deletion."""

    @pytest.mark.asyncio
    async def test_deletes_through_admin_client(self, service, admin_client):
        await service.delete_account("user-1")
        admin_client.auth.admin_delete_user.assert_awaited_once_with("user-1")

    @pytest.mark.asyncio
    async def test_failure_raises(self, service, admin_client):
        admin_client.auth.admin_delete_user.side_effect = SupabaseError("forbidden", status_code=403)
        with pytest.raises(SupabaseError):
            await service.delete_account("user-1")
