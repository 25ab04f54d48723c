"""
Account Service HTTP Client

Provides async HTTP client for communicating with account_service.
Implements AccountClientProtocol for dependency injection.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.service_client_base import BaseServiceClient

logger = logging.getLogger(__name__)


class AccountClient(BaseServiceClient):
    """Async HTTP client for account_service"""

    service_name = "account_service"
    url_setting = "account_service_url"

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get user from account_service

        Args:
            user_id: User identifier

        Returns:
            User data dictionary or None if not found

        Raises:
            httpx.HTTPError: On transport errors or non-404 error statuses
        """
        try:
            response = await self.get(f"/api/v1/users/{user_id}")
            if response.status_code == 404:
                logger.info(f"User not found: {user_id}")
                return None
            response.raise_for_status()
            logger.debug(f"Successfully retrieved user: {user_id}")
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error getting user {user_id}: {e.response.status_code}")
            raise
        except httpx.RequestError as e:
            logger.error(f"Request error getting user {user_id}: {e}")
            raise

    async def user_exists(self, user_id: str) -> bool:
        """True if account_service knows the user and it is not deactivated"""
        user = await self.get_user(user_id)
        if user is None:
            return False
        return user.get("is_active", True)


__all__ = ["AccountClient"]
