"""Probe bodies and lifecycle states."""

from enum import Enum


class ProbeState(str, Enum):
    """Plain-text bodies returned by the probe endpoints."""

    READY = "READY"
    NOT_READY = "NOT_READY"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    NOT_SHUTTING_DOWN = "NOT_SHUTTING_DOWN"


class LifecycleState(str, Enum):
    """States of the shutdown coordinator."""

    RUNNING = "RUNNING"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    TERMINATED = "TERMINATED"
