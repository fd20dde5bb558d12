"""Pytest configuration and shared fixtures."""

import pytest

from stateflow.config.settings import StateFlowSettings
from stateflow.mirror import MemoryMirrorBridge
from stateflow.storage import MemoryPersistenceProvider


@pytest.fixture
def settings() -> StateFlowSettings:
    """Create isolated settings (environment and .env are ignored).

    Returns:
        StateFlowSettings with defaults.
    """
    return StateFlowSettings(_env_file=None)


@pytest.fixture
def provider() -> MemoryPersistenceProvider:
    """Create an in-memory persistence provider.

    Returns:
        MemoryPersistenceProvider instance for testing.
    """
    return MemoryPersistenceProvider()


@pytest.fixture
def bridge() -> MemoryMirrorBridge:
    """Create a recording mirror bridge.

    Returns:
        MemoryMirrorBridge instance for testing.
    """
    return MemoryMirrorBridge()
