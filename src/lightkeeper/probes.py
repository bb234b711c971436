"""HTTP probe endpoints derived from the server state."""

from collections.abc import Callable
from typing import NamedTuple

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from lightkeeper.middleware import ProbeLoggingMiddleware
from lightkeeper.readiness import ServerState
from lightkeeper.states import ProbeState

logger = structlog.get_logger(__name__)


class ProbeResponse(NamedTuple):
    status_code: int
    body: ProbeState


def health_probe(state: ServerState) -> ProbeResponse:
    """Combined probe: shutting down wins, then the signalled readiness."""
    if state.shutting_down:
        return ProbeResponse(status.HTTP_500_INTERNAL_SERVER_ERROR, ProbeState.SHUTTING_DOWN)
    if state.ready:
        return ProbeResponse(status.HTTP_200_OK, ProbeState.READY)
    return ProbeResponse(status.HTTP_500_INTERNAL_SERVER_ERROR, ProbeState.NOT_READY)


def liveness_probe(state: ServerState) -> ProbeResponse:
    if state.shutting_down:
        return ProbeResponse(status.HTTP_500_INTERNAL_SERVER_ERROR, ProbeState.SHUTTING_DOWN)
    return ProbeResponse(status.HTTP_200_OK, ProbeState.NOT_SHUTTING_DOWN)


def readiness_probe(state: ServerState) -> ProbeResponse:
    """Readiness probe: blocking tasks force NOT_READY."""
    if state.is_ready():
        return ProbeResponse(status.HTTP_200_OK, ProbeState.READY)
    return ProbeResponse(status.HTTP_500_INTERNAL_SERVER_ERROR, ProbeState.NOT_READY)


PROBES: dict[str, Callable[[ServerState], ProbeResponse]] = {
    "/health": health_probe,
    "/live": liveness_probe,
    "/ready": readiness_probe,
}


def evaluate_probe(probe: Callable[[ServerState], ProbeResponse], state: ServerState) -> ProbeResponse:
    """Evaluate a probe, turning internal failures into a plain 500."""
    try:
        return probe(state)
    except Exception as e:
        logger.error(
            "probe_evaluation_failed",
            probe=probe.__name__,
            error=str(e),
            error_type=type(e).__name__,
        )
        return ProbeResponse(status.HTTP_500_INTERNAL_SERVER_ERROR, ProbeState.NOT_READY)


def _make_endpoint(probe: Callable[[ServerState], ProbeResponse]):
    async def endpoint(request: Request) -> PlainTextResponse:
        response = evaluate_probe(probe, request.app.state.server_state)
        content = "" if request.method == "HEAD" else response.body.value
        return PlainTextResponse(content=content, status_code=response.status_code)

    endpoint.__name__ = probe.__name__
    return endpoint


def create_probe_app(state: ServerState) -> FastAPI:
    """Build the probe application for ``state``."""
    app = FastAPI(
        title="Lightkeeper Probes",
        description="Kubernetes health, liveness and readiness probes",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.server_state = state
    app.add_middleware(ProbeLoggingMiddleware)

    for path, probe in PROBES.items():
        app.add_api_route(
            path,
            _make_endpoint(probe),
            methods=["GET", "HEAD"],
            response_class=PlainTextResponse,
        )

    return app
