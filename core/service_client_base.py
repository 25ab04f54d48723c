"""
Base Service Client for Internal Microservice Communication

Base class for every peer-service HTTP client. Handles base URL
resolution, internal-call headers, timeouts and client lifecycle.
"""

import httpx
import logging
from typing import Optional, Dict, Any
from abc import ABC

logger = logging.getLogger(__name__)


class BaseServiceClient(ABC):
    """
    Base class for peer-service clients.

    Handles:
    1. Base URL resolution from ServiceConfig
    2. Internal-call headers
    3. httpx client management
    4. Timeout control

    Example:
        class AccountClient(BaseServiceClient):
            service_name = "account_service"
            url_setting = "account_service_url"

            async def get_user(self, user_id: str):
                response = await self.get(f"/api/v1/users/{user_id}")
                return response.json()
    """

    # Subclasses define these
    service_name: str = None   # e.g. "account_service"
    url_setting: str = None    # ServiceConfig attribute holding the base URL

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        caller: str = "circulation_service",
    ):
        """
        Initialize service client

        Args:
            base_url: Service base URL (resolved from settings when omitted)
            timeout: Request timeout in seconds (settings default when omitted)
            transport: Optional httpx transport, used by tests
            caller: Name sent in the internal-call headers
        """
        if not self.service_name:
            raise ValueError(f"{self.__class__.__name__} must define 'service_name'")

        if base_url is None or timeout is None:
            from core.config import get_settings
            services = get_settings().services
            if base_url is None:
                base_url = getattr(services, self.url_setting)
            if timeout is None:
                timeout = services.request_timeout

        self.base_url = base_url.rstrip('/')
        self.caller = caller

        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers=self._build_default_headers(),
            transport=transport,
        )

        logger.debug(f"Initialized {self.service_name} client: {self.base_url}")

    def _build_default_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": f"library-internal-client/{self.caller}",
            "X-Internal-Call": "true",
            "X-Calling-Service": self.caller,
        }

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
        logger.debug(f"Closed {self.service_name} client")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ========================================
    # HTTP helpers
    # ========================================

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        return await self.client.get(url, params=params, headers=headers)

    async def post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        return await self.client.post(url, json=json, headers=headers)


__all__ = ["BaseServiceClient"]
