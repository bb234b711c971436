"""Shutdown coordination for graceful termination."""

import asyncio
import inspect
import math
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from lightkeeper.beacons import BeaconRegistry
from lightkeeper.config import LightkeeperSettings
from lightkeeper.readiness import ServerState
from lightkeeper.states import LifecycleState

logger = structlog.get_logger(__name__)

ShutdownHandler = Callable[[], Awaitable[Any] | Any]

# Seconds to wait for the process to exit on its own after the sequence completes
FORCED_EXIT_GRACE_PERIOD = 1.0


class ShutdownCoordinator:
    """Runs the shutdown sequence at most once per instance.

    Sequence: delay, wait for live beacons, run handlers in registration
    order, close the probe surface, then arm a watchdog that terminates the
    process if it is still around after ``FORCED_EXIT_GRACE_PERIOD``.

    The graceful timeout covers everything from the trigger to the end of
    the handlers; the handler timeout covers the handlers alone. Both are
    loop timers: they never interrupt a running handler, they invoke the
    terminate callback when they fire first and the rest of the sequence is
    abandoned.
    """

    def __init__(
        self,
        state: ServerState,
        beacons: BeaconRegistry,
        settings: LightkeeperSettings,
        close_surface: Callable[[], Awaitable[None]] | None = None,
    ):
        self._state = state
        self._beacons = beacons
        self._settings = settings
        self._close_surface = close_surface
        self._handlers: list[ShutdownHandler] = []
        self._lifecycle = LifecycleState.RUNNING
        self._terminate_called = False
        self._shutdown_event = asyncio.Event()
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def lifecycle_state(self) -> LifecycleState:
        return self._lifecycle

    @property
    def is_shutting_down(self) -> bool:
        return self._state.shutting_down

    def register_handler(self, handler: ShutdownHandler) -> None:
        """Register a teardown callable (sync or async) to run on shutdown."""
        self._handlers.append(handler)

    async def shutdown(self, next_ready: bool = False) -> None:
        """Run the shutdown sequence and wait for it; no-op if it already started.

        The sequence runs in its own task, so cancelling the caller does not
        stop it or disarm the forced-termination timers.
        """
        task = self.trigger(next_ready)
        if task is None:
            return
        await asyncio.shield(task)

    def trigger(self, next_ready: bool = False) -> asyncio.Task[None] | None:
        """Start the shutdown sequence in the background.

        The shutting-down flag is set before this returns.
        """
        if not self._begin(next_ready):
            return None
        task = asyncio.get_running_loop().create_task(self._run_sequence())
        self._background_tasks.add(task)
        task.add_done_callback(self._on_sequence_done)
        return task

    async def wait_for_shutdown(self) -> None:
        """Wait until the sequence has completed or was forcibly terminated."""
        await self._shutdown_event.wait()

    def _begin(self, next_ready: bool) -> bool:
        if not self._state.begin_shutdown(next_ready):
            logger.warning("shutdown_already_in_progress")
            return False

        self._lifecycle = LifecycleState.SHUTTING_DOWN
        logger.info(
            "shutdown_initiated",
            handlers=len(self._handlers),
            live_beacons=len(self._beacons),
        )
        return True

    def _on_sequence_done(self, task: asyncio.Task[None]) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            logger.warning("shutdown_sequence_cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "shutdown_sequence_failed",
                error=str(error),
                error_type=type(error).__name__,
            )

    async def _run_sequence(self) -> None:
        loop = asyncio.get_running_loop()
        graceful_timer = self._arm_timer(
            loop, self._settings.graceful_shutdown_timeout, "graceful_shutdown_timeout"
        )
        try:
            if self._settings.shutdown_delay:
                logger.debug(
                    "shutdown_delayed",
                    delay_seconds=self._settings.shutdown_delay / 1000,
                )
                await asyncio.sleep(self._settings.shutdown_delay / 1000)
                if self._terminate_called:
                    return

            if len(self._beacons):
                await self._beacons.wait_until_empty()
                if self._terminate_called:
                    return

            handler_timer = self._arm_timer(
                loop, self._settings.shutdown_handler_timeout, "shutdown_handler_timeout"
            )
            try:
                await self._run_handlers()
            finally:
                if handler_timer is not None:
                    handler_timer.cancel()
        finally:
            if graceful_timer is not None:
                graceful_timer.cancel()

        if self._terminate_called:
            return

        logger.debug("shutdown_handlers_completed")
        self._lifecycle = LifecycleState.TERMINATED

        loop.call_later(FORCED_EXIT_GRACE_PERIOD, self._on_process_still_alive)

        if self._close_surface is not None:
            try:
                await self._close_surface()
            except Exception as e:
                logger.error(
                    "probe_surface_close_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )

        self._shutdown_event.set()
        logger.info("shutdown_complete")

    async def _run_handlers(self) -> None:
        logger.debug("running_shutdown_handlers", handlers=len(self._handlers))

        for handler in list(self._handlers):
            try:
                result = handler()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "shutdown_handler_failed",
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                    error_type=type(e).__name__,
                )
            if self._terminate_called:
                logger.warning("shutdown_handlers_abandoned")
                return

    def _arm_timer(
        self, loop: asyncio.AbstractEventLoop, timeout_ms: float, reason: str
    ) -> asyncio.TimerHandle | None:
        if math.isinf(timeout_ms):
            return None
        return loop.call_later(timeout_ms / 1000, self._force_terminate, reason)

    def _force_terminate(self, reason: str) -> None:
        if self._terminate_called:
            return
        logger.warning("forcing_termination", reason=reason)
        self._terminate()

    def _on_process_still_alive(self) -> None:
        logger.warning(
            "process_did_not_exit",
            detail="investigate what is keeping the event loop active",
        )
        self._terminate()

    def _terminate(self) -> None:
        if self._terminate_called:
            return
        self._terminate_called = True
        self._lifecycle = LifecycleState.TERMINATED
        self._shutdown_event.set()
        self._settings.terminate()
