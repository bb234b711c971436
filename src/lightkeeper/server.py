"""Uvicorn server hosting the probe endpoints inside the running event loop."""

import asyncio
import contextlib
import socket
from collections.abc import Generator

import structlog
import uvicorn
from fastapi import FastAPI

logger = structlog.get_logger(__name__)


class ProbeServerError(Exception):
    """Raised when the probe server cannot be started."""


class _EmbeddedServer(uvicorn.Server):
    """Uvicorn server that leaves signal handling to the coordinator."""

    def install_signal_handlers(self) -> None:
        return None

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        yield


class ProbeServer:
    """Runs uvicorn as a background task of the current event loop.

    The listening socket is bound here rather than by uvicorn so bind
    failures raise ``ProbeServerError`` instead of exiting the process.
    """

    def __init__(
        self,
        app: FastAPI,
        host: str = "0.0.0.0",
        port: int = 9000,
        log_level: str = "info",
        startup_timeout: float = 5.0,
    ):
        self.app = app
        self.host = host
        self.requested_port = port
        self.log_level = log_level
        self.startup_timeout = startup_timeout
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._port: int | None = None

    @property
    def port(self) -> int | None:
        """Bound port, or None when not running."""
        return self._port

    @property
    def is_running(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    async def start(self) -> None:
        if self.is_running:
            raise ProbeServerError("Probe server already started")

        try:
            sock = socket.create_server((self.host, self.requested_port))
        except OSError as e:
            raise ProbeServerError(
                f"Cannot bind probe server to {self.host}:{self.requested_port}: {e}"
            ) from e
        sock.setblocking(False)
        self._port = sock.getsockname()[1]

        config = uvicorn.Config(
            app=self.app,
            loop="asyncio",
            log_level=self.log_level.lower(),
            log_config=None,
            access_log=False,
            lifespan="off",
            server_header=False,
        )
        self._server = _EmbeddedServer(config)
        self._serve_task = asyncio.create_task(
            self._server.serve(sockets=[sock]), name="lightkeeper-probe-server"
        )

        try:
            async with asyncio.timeout(self.startup_timeout):
                while not self._server.started:
                    if self._serve_task.done():
                        break
                    await asyncio.sleep(0.01)
        except TimeoutError as e:
            await self.stop()
            raise ProbeServerError("Probe server did not start in time") from e

        if self._serve_task.done():
            error = None if self._serve_task.cancelled() else self._serve_task.exception()
            self._port = None
            sock.close()
            raise ProbeServerError(f"Probe server exited during startup: {error}")

        logger.info("probe_server_started", host=self.host, port=self._port)

    async def stop(self) -> None:
        if self._server is None or self._serve_task is None:
            return

        self._server.should_exit = True
        try:
            await self._serve_task
        finally:
            logger.info("probe_server_stopped", port=self._port)
            self._server = None
            self._serve_task = None
            self._port = None
