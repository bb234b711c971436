import os
from unittest.mock import Mock

import pytest
import pytest_asyncio

from lightkeeper.beacons import BeaconRegistry
from lightkeeper.config import LightkeeperSettings
from lightkeeper.readiness import ServerState
from lightkeeper.service import create_lightkeeper
from lightkeeper.shutdown import ShutdownCoordinator


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Run every test in local mode, unaffected by LIGHTKEEPER_* variables."""
    monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
    for name in list(os.environ):
        if name.upper().startswith("LIGHTKEEPER_"):
            monkeypatch.delenv(name)


@pytest.fixture
def terminate():
    """Stand-in for the forced-termination callback."""
    return Mock()


@pytest.fixture
def settings(terminate):
    """Settings without the pre-handler delay, as most tests want."""
    return LightkeeperSettings(shutdown_delay=0, terminate=terminate)


@pytest.fixture
def make_coordinator(terminate):
    """Build a coordinator with its own state and beacon registry.

    Returns a factory taking settings overrides and returning
    ``(coordinator, state, beacons)``.
    """

    def factory(close_surface=None, **overrides):
        overrides.setdefault("shutdown_delay", 0)
        settings = LightkeeperSettings(terminate=terminate, **overrides)
        state = ServerState()
        beacons = BeaconRegistry()
        coordinator = ShutdownCoordinator(
            state, beacons, settings, close_surface=close_surface
        )
        return coordinator, state, beacons

    return factory


@pytest_asyncio.fixture
async def lightkeeper(settings):
    """Running Lightkeeper serving probes on an ephemeral port."""
    instance = await create_lightkeeper(settings)
    yield instance
    await instance.close()
