#!/usr/bin/env python3
"""Logging configuration for the circulation service

Console/file handlers for the service logger plus a separate level for
the chatty client libraries (asyncpg, nats, httpx).
"""
import os
from dataclasses import dataclass

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
NOISY_LIBRARIES = ("asyncpg", "nats", "httpx", "httpcore")

def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class LoggingConfig:
    """Where and how loudly the circulation service logs"""
    log_level: str = "INFO"
    log_format: str = DEFAULT_FORMAT
    log_file: str = ""
    enable_console: bool = True

    # Level applied to NOISY_LIBRARIES
    library_log_level: str = "WARNING"

    service_name: str = "circulation"
    environment: str = "development"

    @classmethod
    def from_env(cls) -> 'LoggingConfig':
        """Load logging config from environment variables"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO"),
            log_format=os.getenv("LOG_FORMAT", DEFAULT_FORMAT),
            log_file=os.getenv("LOG_FILE", ""),
            enable_console=_bool(os.getenv("LOG_CONSOLE", "true")),
            library_log_level=os.getenv("LIBRARY_LOG_LEVEL", "WARNING"),
            service_name=os.getenv("SERVICE_NAME", "circulation"),
            environment=env,
        )
