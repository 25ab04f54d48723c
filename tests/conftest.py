"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - component/  : Component tests (mocked collaborators, in-memory store)
    - unit/       : Unit tests (pure functions, no I/O)
    - contracts/  : Test data factories
"""
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Set testing environment BEFORE any service imports
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("NATS_ENABLED", "false")

from tests.contracts.circulation.data_contract import CirculationTestDataFactory


@pytest.fixture
def data_factory():
    """Provide data factory for test data generation"""
    return CirculationTestDataFactory
