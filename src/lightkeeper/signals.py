"""Bridge between OS signals and the shutdown coordinator."""

import asyncio
import signal
from collections.abc import Callable, Iterable

import structlog

logger = structlog.get_logger(__name__)


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    signal_names: Iterable[str],
    on_signal: Callable[[signal.Signals], None],
) -> list[signal.Signals]:
    """Register ``on_signal`` for every named signal on ``loop``.

    Returns:
        The signals that were actually installed. Platforms without loop
        signal support (Windows, non-main threads) yield an empty list.
    """
    installed: list[signal.Signals] = []
    for name in signal_names:
        sig = signal.Signals[name]
        try:
            loop.add_signal_handler(sig, _dispatch, sig, on_signal)
        except (NotImplementedError, RuntimeError) as e:
            logger.debug(
                "signal_handlers_not_supported",
                signal=sig.name,
                reason=str(e) or "platform limitation",
            )
            continue
        installed.append(sig)

    if installed:
        logger.debug("signal_handlers_installed", signals=[sig.name for sig in installed])
    return installed


def remove_signal_handlers(
    loop: asyncio.AbstractEventLoop, signals: Iterable[signal.Signals]
) -> None:
    for sig in signals:
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError) as e:
            logger.debug("signal_handler_removal_failed", signal=sig.name, reason=str(e))


def _dispatch(sig: signal.Signals, on_signal: Callable[[signal.Signals], None]) -> None:
    logger.info("signal_received", signal=sig.name)
    on_signal(sig)
