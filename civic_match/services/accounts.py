"""Account lifecycle operations backed by Supabase auth."""

import logging
from typing import Any

from civic_match.services.supabase import (
    SupabaseClient,
    SupabaseError,
    get_anon_client,
    get_service_client,
)

logger = logging.getLogger(__name__)


class AccountService:
    """Verifies user tokens and deletes accounts.

    Token checks go through the anon client; deletion needs the service
    role client. Related rows are removed by database cascades.
    """

    def __init__(self, anon_client: SupabaseClient, admin_client: SupabaseClient):
        self.anon_client = anon_client
        self.admin_client = admin_client

    async def verify_token(self, token: str) -> dict[str, Any] | None:
        """Return the user owning ``token``, or None if it is invalid or expired."""
        try:
            user = await self.anon_client.auth.get_user(token)
        except SupabaseError as e:
            logger.info("Rejected access token: %s", e)
            return None
        if not user or not user.get("id"):
            return None
        return user

    async def delete_account(self, user_id: str) -> None:
        """Delete a user and, by cascade, their data.

        Raises:
            SupabaseError: If the admin API refuses the deletion
        """
        try:
            await self.admin_client.auth.admin_delete_user(user_id)
        except SupabaseError as e:
            logger.error("Error deleting user %s: %s", user_id, e)
            raise
        logger.info("Deleted account: %s", user_id)


# Singleton instance
_service: AccountService | None = None


def get_account_service() -> AccountService:
    """Get the singleton account service."""
    global _service
    if _service is None:
        _service = AccountService(get_anon_client(), get_service_client())
    return _service
