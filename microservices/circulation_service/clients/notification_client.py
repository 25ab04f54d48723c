"""
Notification Service Client

Client for circulation_service to interact with notification_service.
Used to tell borrowers that a reserved item is waiting for them.
"""

import logging

from core.service_client_base import BaseServiceClient

logger = logging.getLogger(__name__)


class NotificationClient(BaseServiceClient):
    """Async HTTP client for notification_service"""

    service_name = "notification_service"
    url_setting = "notification_service_url"

    async def notify_user(self, user_id: str, message: str) -> bool:
        """
        Send an in-app notification to a user.

        Args:
            user_id: Recipient
            message: Notification text

        Returns:
            True if notification_service accepted the notification

        Raises:
            httpx.RequestError: If notification_service cannot be reached
        """
        payload = {
            "user_id": user_id,
            "type": "reservation_available",
            "title": "Reservation available",
            "message": message,
            "channels": ["in_app", "email"],
            "priority": "normal",
        }
        response = await self.post("/api/v1/notifications/send", json=payload)
        if response.status_code >= 400:
            logger.error(f"notification_service rejected notification for {user_id}: {response.status_code}")
            return False

        # Empty 2xx body (e.g. 204) means accepted
        delivered = bool(response.json().get("success", True)) if response.content else True
        logger.info(f"Notification for {user_id} sent: {delivered}")
        return delivered


__all__ = ["NotificationClient"]
