"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import pytest

from mavlink_connect.config import LinkSettings
from mavlink_connect.models.link import ConnectionState, LinkMode, LinkStatus
from mavlink_connect.transport.base import TransportService


class FakeTransport(TransportService):
    """Scriptable transport that records every call.

    ``samples`` is consumed one item per fetch: a dict is returned, an
    exception is raised, an async callable is awaited. Once exhausted
    every fetch returns an empty sample.
    """

    def __init__(self) -> None:
        self.state = ConnectionState()
        self.calls: list[tuple[Any, ...]] = []
        self.subscribers: list = []
        self.data_listeners: list = []

        self.start_result: Any = True
        self.start_error: Exception | None = None
        self.start_delay = 0.0
        self.report_connected = True
        self.bind_result = True
        self.bind_error: Exception | None = None
        self.bind_delay = 0.0
        self.stop_error: Exception | None = None
        self.cleanup_error: Exception | None = None

        self.samples: list[Any] = []
        self.fetch_count = 0

        self.send_result: Any = "ACK"
        self.send_error: Exception | None = None
        self.send_delay = 0.0
        self.sends_in_flight = 0
        self.peak_sends_in_flight = 0
        self.devices: list[dict[str, Any]] = []
        self.devices_error: Exception | None = None

    def push_state(self, state: ConnectionState) -> None:
        self.state = state
        for callback in list(self.subscribers):
            callback(state)

    def push_data(self, data: bytes) -> None:
        for callback in list(self.data_listeners):
            callback(data)

    def get_state(self) -> ConnectionState:
        return self.state

    def subscribe(self, on_change):
        self.subscribers.append(on_change)
        return lambda: self.subscribers.remove(on_change)

    async def start_connection(self, mode: LinkMode) -> Any:
        self.calls.append(("start", mode))
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error
        if mode == LinkMode.SERIAL:
            self.state = ConnectionState(status=LinkStatus.CONNECTING, mode=mode)
        elif self.report_connected:
            self.state = ConnectionState(status=LinkStatus.CONNECTED, mode=mode)
        return self.start_result

    async def stop_connection(self) -> None:
        self.calls.append(("stop",))
        if self.stop_error is not None:
            raise self.stop_error
        self.state = ConnectionState(status=LinkStatus.DISCONNECTED, mode=self.state.mode)

    async def connect_serial_device(self, device_id: int, path: str, baud_rate: int) -> bool:
        self.calls.append(("bind", device_id, path, baud_rate))
        if self.bind_delay:
            await asyncio.sleep(self.bind_delay)
        if self.bind_error is not None:
            raise self.bind_error
        if self.bind_result and self.report_connected:
            self.state = ConnectionState(status=LinkStatus.CONNECTED, mode=LinkMode.SERIAL)
        return self.bind_result

    async def get_mavlink_data(self) -> dict[str, Any]:
        self.fetch_count += 1
        item = self.samples.pop(0) if self.samples else {}
        if isinstance(item, Exception):
            raise item
        if inspect.iscoroutinefunction(item):
            return await item()
        return item

    async def _send(self, *call: Any) -> Any:
        self.calls.append(call)
        self.sends_in_flight += 1
        self.peak_sends_in_flight = max(self.peak_sends_in_flight, self.sends_in_flight)
        try:
            if self.send_delay:
                await asyncio.sleep(self.send_delay)
            if self.send_error is not None:
                raise self.send_error
            return self.send_result
        finally:
            self.sends_in_flight -= 1

    async def send_guided_command(self, name: str) -> str:
        return await self._send("guided", name)

    async def send_serial_data(self, path: str, data: bytes) -> Any:
        return await self._send("serial", path, data)

    async def send_text_command(self, text: str) -> Any:
        return await self._send("text", text)

    async def send_mavlink_message(self, data: bytes) -> Any:
        return await self._send("mavlink", data)

    async def get_serial_device_info(self) -> list[dict[str, Any]]:
        self.calls.append(("scan",))
        if self.devices_error is not None:
            raise self.devices_error
        return list(self.devices)

    def on_serial_data_received(self, callback):
        self.data_listeners.append(callback)
        return lambda: self.data_listeners.remove(callback) if callback in self.data_listeners else None

    def remove_serial_data_listener(self) -> None:
        self.calls.append(("remove_listener",))
        self.data_listeners.clear()

    async def cleanup(self) -> None:
        self.calls.append(("cleanup",))
        if self.cleanup_error is not None:
            raise self.cleanup_error

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


async def _wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def transport() -> FakeTransport:
    """Provide a fresh scriptable transport."""
    return FakeTransport()


@pytest.fixture
def settings() -> LinkSettings:
    """Provide settings with timings shrunk for fast tests."""
    return LinkSettings(
        settle_interval=0.01,
        network_timeout=0.5,
        serial_timeout=0.8,
        poll_interval=0.02,
        empty_streak_threshold=3,
    )


@pytest.fixture
def wait_until():
    """Provide an awaitable poll-until-true helper."""
    return _wait_until


@pytest.fixture
def sample_devices() -> list[dict[str, Any]]:
    """Provide raw device descriptors as a platform would report them."""
    return [
        {"path": "/dev/ttyUSB0", "name": "CP2102 USB to UART", "vendorId": "10c4", "productId": "ea60"},
        {"port": "/dev/ttyACM0", "description": "Pixhawk", "vid": 0x26AC, "pid": 0x0011},
    ]
