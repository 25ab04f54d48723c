#!/usr/bin/env python3
"""Service configuration for peer library services

Endpoints of the services the circulation core talks to over HTTP:
account (borrower directory), catalog (item titles) and notification.
"""
import os
from dataclasses import dataclass

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Peer service endpoints"""

    account_service_url: str = "http://localhost:8202"
    catalog_service_url: str = "http://localhost:8220"
    notification_service_url: str = "http://localhost:8206"

    # Timeout applied to every peer call, in seconds
    request_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        return cls(
            account_service_url=os.getenv("ACCOUNT_SERVICE_URL", "http://localhost:8202"),
            catalog_service_url=os.getenv("CATALOG_SERVICE_URL", "http://localhost:8220"),
            notification_service_url=os.getenv("NOTIFICATION_SERVICE_URL", "http://localhost:8206"),
            request_timeout=_float(os.getenv("SERVICE_REQUEST_TIMEOUT", "10"), 10.0),
        )
