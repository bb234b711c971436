"""Readiness state and blocking-task bookkeeping."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class ServerState:
    """Holds the readiness and shutdown flags of one coordinator instance.

    The effective readiness reported to the orchestrator is ``ready`` AND no
    blocking task outstanding. Blocking tasks that fail are reported through
    ``on_blocking_task_failure`` so the owner can start the shutdown sequence.

    Attributes:
        on_blocking_task_failure: Called with the error of a failed blocking task.
    """

    def __init__(
        self,
        on_blocking_task_failure: Callable[[BaseException], None] | None = None,
    ):
        self._ready = False
        self._shutting_down = False
        self._blocking_tasks: list[asyncio.Future[Any]] = []
        self._first_ready = asyncio.Event()
        self.on_blocking_task_failure = on_blocking_task_failure

    @property
    def ready(self) -> bool:
        """Readiness as last signalled, ignoring blocking tasks."""
        return self._ready

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def blocking_task_count(self) -> int:
        return len(self._blocking_tasks)

    @property
    def first_ready_reached(self) -> bool:
        return self._first_ready.is_set()

    def is_ready(self) -> bool:
        """Return readiness with blocking tasks taken into account."""
        if self._blocking_tasks:
            logger.debug(
                "service_not_ready_blocking_tasks",
                blocking_tasks=len(self._blocking_tasks),
            )
            return False
        return self._ready

    def signal_ready(self) -> None:
        if self._shutting_down:
            logger.warning("signal_ready_ignored", reason="server is already shutting down")
            return

        logger.info("signaling_ready")

        if self._blocking_tasks:
            logger.debug(
                "ready_deferred_by_blocking_tasks",
                blocking_tasks=len(self._blocking_tasks),
            )

        self._ready = True

        if not self._blocking_tasks:
            self._resolve_first_ready()

    def signal_not_ready(self) -> None:
        if self._shutting_down:
            logger.warning("signal_not_ready_ignored", reason="server is already shutting down")
            return

        if not self._ready:
            logger.warning("server_already_not_ready")

        logger.info("signaling_not_ready")
        self._ready = False

    def begin_shutdown(self, next_ready: bool = False) -> bool:
        """Flip into the shutting-down state.

        Check and set happen without a suspension point, so concurrent
        triggers cannot both win.

        Returns:
            True if this call started the shutdown, False if it was already
            underway.
        """
        if self._shutting_down:
            return False
        self._shutting_down = True
        self._ready = next_ready
        return True

    def queue_blocking_task(self, task: Awaitable[Any]) -> asyncio.Future[Any]:
        """Force the service not-ready until ``task`` completes.

        Args:
            task: Coroutine, task or future. Coroutines are scheduled on the
                running loop.

        Returns:
            The future being tracked.
        """
        future = asyncio.ensure_future(task)
        self._blocking_tasks.append(future)
        future.add_done_callback(self._on_blocking_task_done)
        logger.debug("blocking_task_queued", blocking_tasks=len(self._blocking_tasks))
        return future

    def _on_blocking_task_done(self, future: asyncio.Future[Any]) -> None:
        # One entry per registration, so duplicates drain one at a time
        self._blocking_tasks.remove(future)

        if future.cancelled():
            error: BaseException | None = asyncio.CancelledError()
        else:
            error = future.exception()

        if error is not None:
            logger.error(
                "blocking_task_failed",
                error=str(error),
                error_type=type(error).__name__,
            )
            if self.on_blocking_task_failure is not None:
                self.on_blocking_task_failure(error)
            return

        logger.debug("blocking_task_resolved", blocking_tasks=len(self._blocking_tasks))

        if not self._blocking_tasks and self._ready:
            self._resolve_first_ready()

    def _resolve_first_ready(self) -> None:
        if self._first_ready.is_set():
            return
        self._first_ready.set()
        logger.info("service_became_available_for_the_first_time")

    async def when_first_ready(self) -> None:
        """Wait until the service has been effectively ready at least once."""
        await self._first_ready.wait()
