"""Controller timing and buffer settings with environment overrides."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator

from mavlink_connect.exceptions import InvalidConfigurationError
from mavlink_connect.models.link import LinkMode

ENV_PREFIX = "MAVLINK_CONNECT_"

# Conventional serial paths offered when enumeration comes back empty.
DEFAULT_FALLBACK_SERIAL_PATHS: tuple[str, ...] = (
    "/dev/ttyUSB0",
    "/dev/ttyUSB1",
    "/dev/ttyACM0",
    "/dev/ttyACM1",
)


class LinkSettings(BaseModel):
    """Timing constants and buffer sizes for one link controller."""

    model_config = {"frozen": True}

    settle_interval: float = Field(default=1.0, ge=0, description="Seconds to wait before re-reading status")
    network_timeout: float = Field(default=10.0, gt=0, description="Watchdog bound for TCP/UDP attempts")
    serial_timeout: float = Field(default=20.0, gt=0, description="Watchdog bound for serial attempts")
    poll_interval: float = Field(default=1.0, gt=0)
    empty_streak_threshold: int = Field(default=5, gt=0)
    default_baud_rate: int = Field(default=57600, gt=0)
    fallback_serial_paths: tuple[str, ...] = DEFAULT_FALLBACK_SERIAL_PATHS
    command_log_size: int = Field(default=100, gt=0)
    serial_rx_buffer_size: int = Field(default=256, gt=0)

    @field_validator("fallback_serial_paths")
    @classmethod
    def _non_empty_paths(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("fallback_serial_paths must not be empty")
        return value

    def watchdog_timeout(self, mode: LinkMode) -> float:
        """Return the attempt bound for a mode. Serial gets the longer one."""
        if mode == LinkMode.SERIAL:
            return self.serial_timeout
        return self.network_timeout

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> LinkSettings:
        """Build settings, applying MAVLINK_CONNECT_* overrides.

        Example: MAVLINK_CONNECT_POLL_INTERVAL=0.5 or
        MAVLINK_CONNECT_FALLBACK_SERIAL_PATHS=/dev/ttyS0,/dev/ttyS1
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None or raw == "":
                continue
            if name == "fallback_serial_paths":
                overrides[name] = tuple(p.strip() for p in raw.split(",") if p.strip())
            else:
                overrides[name] = raw
        try:
            return cls(**overrides)
        except ValueError as exc:
            raise InvalidConfigurationError(f"Invalid link settings: {exc}") from exc
