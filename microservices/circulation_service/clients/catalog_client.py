"""
Catalog Service HTTP Client

Looks up item titles for borrower notifications.
"""

import logging

import httpx

from core.service_client_base import BaseServiceClient

logger = logging.getLogger(__name__)


class CatalogClient(BaseServiceClient):
    """Async HTTP client for catalog_service"""

    service_name = "catalog_service"
    url_setting = "catalog_service_url"

    async def get_title(self, item_id: str) -> str:
        """
        Get the title of a catalog item.

        Falls back to the item id when the catalog has no such item.

        Raises:
            httpx.HTTPError: On transport errors or non-404 error statuses
        """
        try:
            response = await self.get(f"/api/v1/books/{item_id}")
            if response.status_code == 404:
                logger.warning(f"Catalog item not found: {item_id}")
                return item_id
            response.raise_for_status()
            return response.json().get("title") or item_id
        except httpx.HTTPError as e:
            logger.error(f"Error getting title for item {item_id}: {e}")
            raise


__all__ = ["CatalogClient"]
