"""Telemetry sample and the display-facing link snapshot."""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from mavlink_connect.models.command import CommandOutcome
from mavlink_connect.models.link import ConnectionState, LinkMode
from mavlink_connect.models.serial import SerialConfig, SerialDevice


class TelemetrySample(Mapping[str, Any]):
    """Read-only keyed telemetry. Zero keys means connected but no data yet."""

    __slots__ = ("_data", "received_at")

    def __init__(self, data: Mapping[str, Any] | None = None, received_at: float | None = None) -> None:
        self._data = MappingProxyType(dict(data or {}))
        self.received_at = time.time() if received_at is None else received_at

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"TelemetrySample({dict(self._data)!r})"

    @property
    def is_empty(self) -> bool:
        return len(self._data) == 0

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


@dataclass(frozen=True)
class LinkSnapshot:
    """Everything the display layer reads. Never mutated by consumers."""

    state: ConnectionState
    selected_mode: LinkMode
    sample: TelemetrySample | None = None
    commands: tuple[CommandOutcome, ...] = ()
    serial_config: SerialConfig | None = None
    devices: tuple[SerialDevice, ...] = ()
    selected_device_id: int | None = None
    serial_rx: tuple[bytes, ...] = ()
    empty_streak: int = 0
