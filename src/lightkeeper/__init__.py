"""Kubernetes probe state and graceful shutdown coordination."""

from lightkeeper.beacons import BeaconContext, BeaconController
from lightkeeper.config import LightkeeperSettings
from lightkeeper.server import ProbeServerError
from lightkeeper.service import Lightkeeper, create_lightkeeper
from lightkeeper.shutdown import ShutdownHandler
from lightkeeper.states import LifecycleState, ProbeState

__all__ = [
    "BeaconContext",
    "BeaconController",
    "LifecycleState",
    "Lightkeeper",
    "LightkeeperSettings",
    "ProbeServerError",
    "ProbeState",
    "ShutdownHandler",
    "create_lightkeeper",
]
