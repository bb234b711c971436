"""Beacons: caller-held tokens for work that must finish before shutdown."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

BeaconContext = dict[str, Any]


@dataclass(eq=False)
class Beacon:
    """One unit of outstanding work. Compared by identity."""

    context: BeaconContext = field(default_factory=dict)


class BeaconController:
    """Handle returned to the code that owns a beacon."""

    def __init__(self, registry: "BeaconRegistry", beacon: Beacon):
        self._registry = registry
        self._beacon = beacon
        self._dead = False

    @property
    def context(self) -> BeaconContext:
        return self._beacon.context

    @property
    def is_alive(self) -> bool:
        return not self._dead

    async def die(self) -> None:
        """Mark the work as finished.

        Waiters are notified before the next scheduling tick, so by the time
        this returns they have had a chance to react.
        """
        if self._dead:
            logger.debug("beacon_already_dead", context=self._beacon.context)
        else:
            self._dead = True
            logger.debug("beacon_killed", context=self._beacon.context)
            self._registry.remove(self._beacon)

        await asyncio.sleep(0)


class BeaconRegistry:
    """Tracks live beacons and notifies listeners when the set changes."""

    def __init__(self):
        self._beacons: list[Beacon] = []
        self._listeners: list[Callable[[], None]] = []

    def __len__(self) -> int:
        return len(self._beacons)

    @property
    def contexts(self) -> list[BeaconContext]:
        return [beacon.context for beacon in self._beacons]

    def create(self, context: BeaconContext | None = None) -> BeaconController:
        beacon = Beacon(context=dict(context) if context else {})
        self._beacons.append(beacon)
        logger.debug("beacon_created", context=beacon.context, live_beacons=len(self._beacons))
        return BeaconController(self, beacon)

    def remove(self, beacon: Beacon) -> None:
        for index, candidate in enumerate(self._beacons):
            if candidate is beacon:
                del self._beacons[index]
                break
        else:
            return
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    async def wait_until_empty(self) -> None:
        """Wait until no beacons are live.

        The listener is registered before the first check so a beacon dying
        in between cannot be missed.
        """
        if not self._beacons:
            return

        drained: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def check() -> None:
            logger.debug("checking_live_beacons")
            if self._beacons:
                logger.info(
                    "termination_on_hold_live_beacons",
                    live_beacons=len(self._beacons),
                    beacons=self.contexts,
                )
            elif not drained.done():
                logger.info("no_live_beacons")
                drained.set_result(None)

        self._listeners.append(check)
        try:
            check()
            await drained
        finally:
            self._listeners.remove(check)
