"""
Component Test Layer Configuration

Usage:
    pytest tests/component -v
    pytest tests/component/circulation -v
"""
import pytest


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "component: marks tests as component tests (mocked collaborators)"
    )
