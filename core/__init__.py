#!/usr/bin/env python3
"""
Core Module for Library Microservices

Shared infrastructure components for the library microservices.

COMPONENTS:
    - config/: Dataclass configuration loaded from environment (python-dotenv)
    - logger.py: Service logger setup
    - nats_client.py: NATS event bus for event-driven architecture
    - postgres_client.py: asyncpg connection pool wrapper
    - service_client_base.py: httpx base client for inter-service calls

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger("circulation_service")
"""

__version__ = "1.0.0"
