"""
Service logger setup

Configures the root logger for a microservice from LoggingConfig and
returns the service's named logger.
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig, get_settings
from core.config.logging_config import NOISY_LIBRARIES

_configured = False


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure logging once per process and return the service logger.

    Args:
        service_name: Logger name, usually the microservice name
        config: Logging configuration (defaults to global settings)

    Returns:
        logging.Logger for the service
    """
    global _configured

    config = config or get_settings().logging

    if not _configured:
        root = logging.getLogger()
        root.setLevel(config.log_level.upper())
        formatter = logging.Formatter(config.log_format)

        if config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        for name in NOISY_LIBRARIES:
            logging.getLogger(name).setLevel(config.library_log_level.upper())

        _configured = True

    logger = logging.getLogger(service_name)
    logger.info(f"Logging configured for {service_name} ({config.environment}, level={config.log_level})")
    return logger
