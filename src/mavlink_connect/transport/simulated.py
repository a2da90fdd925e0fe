"""In-memory transport that fakes a vehicle, used by the CLI demo."""

from __future__ import annotations

import asyncio
import math
import time
from typing import Any

from mavlink_connect.exceptions import ConnectionLostError, HandshakeFailure
from mavlink_connect.models.command import GuidedCommand
from mavlink_connect.models.link import ConnectionState, LinkMode, LinkStatus
from mavlink_connect.transport.base import (
    DataCallback,
    RawDeviceInfo,
    StateCallback,
    TransportService,
    Unsubscribe,
)
from mavlink_connect.utils.logging import get_logger

logger = get_logger(__name__)


def list_host_serial_ports() -> list[RawDeviceInfo]:
    """Enumerate host serial ports through pyserial."""
    try:
        from serial.tools.list_ports import comports
    except ImportError:
        logger.warning("pyserial_not_available", msg="Install pyserial for port scanning")
        return []
    ports = []
    for port in comports():
        ports.append({
            "path": port.device,
            "name": port.description or port.name,
            "vendorId": f"{port.vid:04X}" if port.vid is not None else None,
            "productId": f"{port.pid:04X}" if port.pid is not None else None,
        })
    return ports


class SimulatedTransport(TransportService):
    """Fake vehicle link with latency and synthetic telemetry.

    The first ``warmup_polls`` fetches return an empty sample, the way a
    real link looks before the first HEARTBEAT arrives.
    """

    def __init__(
        self,
        latency: float = 0.05,
        warmup_polls: int = 1,
        enumerate_host_ports: bool = True,
    ) -> None:
        self._latency = latency
        self._warmup_polls = warmup_polls
        self._enumerate_host_ports = enumerate_host_ports
        self._state = ConnectionState()
        self._subscribers: list[StateCallback] = []
        self._data_listeners: list[DataCallback] = []
        self._serial_path: str | None = None
        self._polls = 0
        self._started_at = 0.0
        self._armed = False
        self._altitude = 0.0

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

    def get_state(self) -> ConnectionState:
        return self._state

    def subscribe(self, on_change: StateCallback) -> Unsubscribe:
        self._subscribers.append(on_change)

        def _unsubscribe() -> None:
            if on_change in self._subscribers:
                self._subscribers.remove(on_change)

        return _unsubscribe

    async def start_connection(self, mode: LinkMode) -> bool:
        await asyncio.sleep(self._latency)
        self._polls = 0
        self._started_at = time.monotonic()
        if mode == LinkMode.SERIAL:
            # Serial mode is only usable once a device is bound.
            self._set_state(ConnectionState(status=LinkStatus.CONNECTING, mode=mode))
        else:
            self._set_state(ConnectionState(status=LinkStatus.CONNECTED, mode=mode))
        logger.debug("sim_start_connection", mode=mode.value)
        return True

    async def stop_connection(self) -> None:
        self._serial_path = None
        if self._state.status != LinkStatus.DISCONNECTED:
            self._set_state(ConnectionState(status=LinkStatus.DISCONNECTED, mode=self._state.mode))

    async def connect_serial_device(self, device_id: int, path: str, baud_rate: int) -> bool:
        await asyncio.sleep(self._latency)
        if self._state.mode != LinkMode.SERIAL:
            raise HandshakeFailure("Serial mode not active")
        self._serial_path = path
        self._set_state(ConnectionState(status=LinkStatus.CONNECTED, mode=LinkMode.SERIAL))
        logger.debug("sim_serial_bound", device_id=device_id, path=path, baud_rate=baud_rate)
        return True

    def _require_connected(self) -> None:
        if self._state.status != LinkStatus.CONNECTED:
            raise ConnectionLostError("Simulated link not connected")

    async def get_mavlink_data(self) -> dict[str, Any]:
        await asyncio.sleep(self._latency)
        self._require_connected()
        self._polls += 1
        if self._polls <= self._warmup_polls:
            return {}
        elapsed = time.monotonic() - self._started_at
        if self._armed:
            self._altitude = min(self._altitude + 1.5, 30.0)
        return {
            "HEARTBEAT": {"type": 2, "autopilot": 3, "armed": self._armed},
            "ATTITUDE": {
                "roll": round(0.05 * math.sin(elapsed), 4),
                "pitch": round(0.05 * math.cos(elapsed), 4),
                "yaw": round(elapsed % (2 * math.pi), 4),
            },
            "GLOBAL_POSITION_INT": {"relative_alt_m": self._altitude},
            "SYS_STATUS": {"battery_remaining": max(0, 100 - self._polls)},
        }

    async def send_guided_command(self, name: str) -> str:
        await asyncio.sleep(self._latency)
        self._require_connected()
        if name == GuidedCommand.ARM:
            self._armed = True
        elif name in (GuidedCommand.DISARM, GuidedCommand.LAND):
            self._armed = False
            self._altitude = 0.0
        return f"{name} ACCEPTED"

    async def send_serial_data(self, path: str, data: bytes) -> int:
        await asyncio.sleep(self._latency)
        self._require_connected()
        # Loop the bytes back as if the far end echoed them.
        for callback in list(self._data_listeners):
            callback(bytes(data))
        return len(data)

    async def send_text_command(self, text: str) -> int:
        await asyncio.sleep(self._latency)
        self._require_connected()
        return len(text.encode("utf-8"))

    async def send_mavlink_message(self, data: bytes) -> int:
        await asyncio.sleep(self._latency)
        self._require_connected()
        return len(data)

    async def get_serial_device_info(self) -> list[RawDeviceInfo]:
        if not self._enumerate_host_ports:
            return []
        return await asyncio.to_thread(list_host_serial_ports)

    def on_serial_data_received(self, callback: DataCallback) -> Unsubscribe:
        self._data_listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._data_listeners:
                self._data_listeners.remove(callback)

        return _unsubscribe

    def remove_serial_data_listener(self) -> None:
        self._data_listeners.clear()

    async def cleanup(self) -> None:
        await self.stop_connection()
        self._subscribers.clear()
        self._data_listeners.clear()
        logger.debug("sim_cleanup")
