"""Data models for link state, serial setup, commands and telemetry."""

from mavlink_connect.models.command import (
    CommandKind,
    CommandOutcome,
    GuidedCommand,
    SendResult,
)
from mavlink_connect.models.link import ConnectionState, LinkMode, LinkStatus
from mavlink_connect.models.serial import SerialConfig, SerialDevice
from mavlink_connect.models.telemetry import LinkSnapshot, TelemetrySample

__all__ = [
    "CommandKind",
    "CommandOutcome",
    "ConnectionState",
    "GuidedCommand",
    "LinkMode",
    "LinkSnapshot",
    "LinkStatus",
    "SendResult",
    "SerialConfig",
    "SerialDevice",
    "TelemetrySample",
]
