"""Configuration for the lifecycle coordinator."""

import logging
import math
import os
import signal
import sys
from collections.abc import Callable
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def terminate_process() -> None:
    """Exit the process immediately with status 1."""
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(1)


class LightkeeperSettings(BaseSettings):
    """Lifecycle coordinator configuration loaded from environment variables.

    Durations are expressed in milliseconds. ``float("inf")`` disables the
    corresponding timeout.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIGHTKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Probe server
    port: int = Field(
        default=9000,
        ge=0,
        le=65535,
        description="Port the probe server listens on (must differ from the service port)",
    )
    host: str = Field(
        default="0.0.0.0",
        description="Interface the probe server binds to",
    )

    # Environment
    detect_kubernetes: bool = Field(
        default=True,
        description="Run in local mode when Kubernetes is not detected",
    )
    signals: tuple[str, ...] = Field(
        default=("SIGTERM", "SIGHUP", "SIGINT"),
        description="OS signals that trigger the shutdown sequence",
    )

    # Shutdown timing (milliseconds)
    graceful_shutdown_timeout: float = Field(
        default=60_000,
        description="Time from shutdown trigger to forced termination in milliseconds",
    )
    shutdown_handler_timeout: float = Field(
        default=5_000,
        description="Time allowed for shutdown handlers in milliseconds",
    )
    shutdown_delay: float = Field(
        default=5_000,
        description="Pause before shutdown handlers run in milliseconds (match readinessProbe.periodSeconds)",
    )

    # Forced termination action, never read from the environment
    terminate: Callable[[], Any] = Field(
        default=terminate_process,
        exclude=True,
        description="Callable used to forcibly terminate the process",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="console",
        description="Log format: 'json' for production, 'console' for development",
    )

    @field_validator("signals")
    @classmethod
    def validate_signals(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Ensure every signal name exists on this platform."""
        unknown = [name for name in v if name not in signal.Signals.__members__]
        if unknown:
            raise ValueError(f"Unknown signal name(s): {', '.join(unknown)}")
        return v

    @field_validator(
        "graceful_shutdown_timeout", "shutdown_handler_timeout", "shutdown_delay"
    )
    @classmethod
    def validate_duration(cls, v: float) -> float:
        if math.isnan(v) or v < 0:
            raise ValueError("Durations must be non-negative milliseconds")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in ("json", "console"):
            raise ValueError(f"Invalid log format: {v}")
        return fmt

    @model_validator(mode="after")
    def validate_timeouts(self) -> "LightkeeperSettings":
        """Handler timeout must fit inside the graceful shutdown timeout."""
        if self.graceful_shutdown_timeout < self.shutdown_handler_timeout:
            raise ValueError(
                "graceful_shutdown_timeout cannot be lesser than shutdown_handler_timeout"
            )
        return self

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)
