"""
Circulation Service Client Module

Provides HTTP clients for synchronous communication with other microservices.
"""

from .account_client import AccountClient
from .catalog_client import CatalogClient
from .notification_client import NotificationClient

__all__ = [
    "AccountClient",
    "CatalogClient",
    "NotificationClient",
]
