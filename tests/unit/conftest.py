"""
Unit Test Layer Configuration

Usage:
    pytest tests/unit -v
    pytest tests/unit -m unit -v
"""
import pytest


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
