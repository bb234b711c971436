"""Middleware for probe request logging."""

import time

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.get_logger(__name__)


class ProbeLoggingMiddleware:
    """Log probe requests at debug level.

    Orchestrators poll every few seconds, so these never go above debug.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        method = scope["method"]
        client = scope.get("client")
        client_ip = client[0] if client else None

        start_time = time.perf_counter()
        status_code = None

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        await self.app(scope, receive, send_wrapper)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "probe_request",
            method=method,
            path=path,
            client_ip=client_ip,
            status_code=status_code,
            duration_ms=round(duration_ms, 2),
        )
