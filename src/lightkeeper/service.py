"""Lifecycle coordinator exposed to the embedding application."""

import asyncio
import signal
from collections.abc import Awaitable
from typing import Any

import structlog

from lightkeeper.beacons import BeaconContext, BeaconController, BeaconRegistry
from lightkeeper.config import LightkeeperSettings
from lightkeeper.environment import is_kubernetes
from lightkeeper.probes import create_probe_app
from lightkeeper.readiness import ServerState
from lightkeeper.server import ProbeServer
from lightkeeper.shutdown import ShutdownCoordinator, ShutdownHandler
from lightkeeper.signals import install_signal_handlers, remove_signal_handlers
from lightkeeper.states import LifecycleState

logger = structlog.get_logger(__name__)


class Lightkeeper:
    """Probe state and graceful shutdown for one process.

    Owns its state outright: several instances can live side by side.

    Example:
        lightkeeper = await create_lightkeeper()
        lightkeeper.register_shutdown_handler(server.close)
        lightkeeper.signal_ready()
    """

    def __init__(self, settings: LightkeeperSettings | None = None):
        self.settings = settings if settings is not None else LightkeeperSettings()
        self.local_mode = self.settings.detect_kubernetes and not is_kubernetes()

        self._state = ServerState(on_blocking_task_failure=self._on_blocking_task_failure)
        self._beacons = BeaconRegistry()
        self._server = ProbeServer(
            create_probe_app(self._state),
            host=self.settings.host,
            port=0 if self.local_mode else self.settings.port,
            log_level=self.settings.log_level,
        )
        self._coordinator = ShutdownCoordinator(
            self._state,
            self._beacons,
            self.settings,
            close_surface=self._close_surface,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed_signals: list[signal.Signals] = []

    @property
    def server(self) -> ProbeServer:
        return self._server

    @property
    def port(self) -> int | None:
        """Port the probes are served on (ephemeral in local mode)."""
        return self._server.port

    @property
    def lifecycle_state(self) -> LifecycleState:
        return self._coordinator.lifecycle_state

    async def start(self) -> None:
        """Start serving probes and listen for shutdown signals."""
        await self._server.start()
        self._loop = asyncio.get_running_loop()

        if self.local_mode:
            logger.warning(
                "local_mode_enabled",
                detail="shutdown signals are not handled in local mode",
                port=self.port,
            )
            return

        self._installed_signals = install_signal_handlers(
            self._loop, self.settings.signals, self._on_signal
        )

    async def close(self) -> None:
        """Stop serving probes and drop signal handlers without shutting down."""
        self._remove_signal_handlers()
        await self._server.stop()

    # State register

    def signal_ready(self) -> None:
        """Report the service as ready to accept traffic."""
        self._state.signal_ready()

    def signal_not_ready(self) -> None:
        """Report the service as not ready to accept traffic."""
        self._state.signal_not_ready()

    def is_server_ready(self) -> bool:
        return self._state.is_ready()

    def is_server_shutting_down(self) -> bool:
        return self._state.shutting_down

    async def when_first_ready(self) -> None:
        """Wait until the service has become ready for the first time."""
        await self._state.when_first_ready()

    # Trackers

    def queue_blocking_task(self, task: Awaitable[Any]) -> asyncio.Future[Any]:
        """Keep the service not ready until ``task`` completes.

        A failing task starts the shutdown sequence.
        """
        return self._state.queue_blocking_task(task)

    def create_beacon(self, context: BeaconContext | None = None) -> BeaconController:
        """Create a live beacon that holds shutdown handlers until it dies."""
        return self._beacons.create(context)

    # Shutdown

    def register_shutdown_handler(self, handler: ShutdownHandler) -> None:
        """Register a teardown callable; handlers run in registration order."""
        self._coordinator.register_handler(handler)

    async def shutdown(self) -> None:
        """Change state to shutting down and run the shutdown sequence."""
        await self._coordinator.shutdown(next_ready=False)

    async def wait_for_shutdown(self) -> None:
        """Wait until the shutdown sequence has finished."""
        await self._coordinator.wait_for_shutdown()

    def _on_signal(self, sig: signal.Signals) -> None:
        self._coordinator.trigger(next_ready=False)

    def _on_blocking_task_failure(self, error: BaseException) -> None:
        logger.warning("shutdown_after_blocking_task_failure", error_type=type(error).__name__)
        self._coordinator.trigger(next_ready=False)

    async def _close_surface(self) -> None:
        self._remove_signal_handlers()
        await self._server.stop()

    def _remove_signal_handlers(self) -> None:
        if self._loop is not None and self._installed_signals:
            remove_signal_handlers(self._loop, self._installed_signals)
        self._installed_signals = []


async def create_lightkeeper(
    settings: LightkeeperSettings | None = None, **overrides: Any
) -> Lightkeeper:
    """Create and start a Lightkeeper.

    Args:
        settings: Complete settings object. When omitted, settings are loaded
            from the environment with ``overrides`` applied on top.
        **overrides: Individual settings, e.g. ``shutdown_delay=0``.

    Raises:
        pydantic.ValidationError: If the configuration is invalid.
        ProbeServerError: If the probe server cannot be started.
    """
    if settings is None:
        settings = LightkeeperSettings(**overrides)
    elif overrides:
        # Rebuild rather than copy so the overrides are validated too
        merged = {**settings.model_dump(), "terminate": settings.terminate, **overrides}
        settings = LightkeeperSettings(**merged)

    lightkeeper = Lightkeeper(settings)
    await lightkeeper.start()
    return lightkeeper
