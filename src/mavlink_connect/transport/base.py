"""Abstract transport service driven by the link controller."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from mavlink_connect.models.link import ConnectionState, LinkMode

StateCallback = Callable[[ConnectionState], None]
DataCallback = Callable[[bytes], None]
Unsubscribe = Callable[[], None]

# Raw device descriptor as reported by the platform, e.g.
# {"path": "/dev/ttyUSB0", "name": "CP2102", "vendorId": "10C4", "productId": "EA60"}
RawDeviceInfo = dict[str, Any]


class TransportService(ABC):
    """Socket/serial I/O and MAVLink parsing behind a narrow contract.

    Synchronous members never block. Every coroutine is a suspension
    point where timers and user actions may interleave.
    """

    @abstractmethod
    def get_state(self) -> ConnectionState:
        """Return the transport's current state snapshot."""

    @abstractmethod
    def subscribe(self, on_change: StateCallback) -> Unsubscribe:
        """Register for a push on every transport state transition."""

    @abstractmethod
    async def start_connection(self, mode: LinkMode) -> bool:
        """Enter the given mode and start the link. Idempotent."""

    @abstractmethod
    async def stop_connection(self) -> None:
        """Stop any link in any mode. Idempotent and mode-agnostic."""

    @abstractmethod
    async def connect_serial_device(self, device_id: int, path: str, baud_rate: int) -> bool:
        """Bind the serial mode to one device."""

    @abstractmethod
    async def get_mavlink_data(self) -> dict[str, Any]:
        """Fetch the latest telemetry. May be empty while connected."""

    @abstractmethod
    async def send_guided_command(self, name: str) -> str:
        """Send a named vehicle command and return the acknowledgement."""

    @abstractmethod
    async def send_serial_data(self, path: str, data: bytes) -> Any:
        """Write raw bytes to a serial device."""

    @abstractmethod
    async def send_text_command(self, text: str) -> Any:
        """Send a UTF-8 text command."""

    @abstractmethod
    async def send_mavlink_message(self, data: bytes) -> Any:
        """Send a pre-built MAVLink frame."""

    @abstractmethod
    async def get_serial_device_info(self) -> list[RawDeviceInfo]:
        """Enumerate serial devices."""

    @abstractmethod
    def on_serial_data_received(self, callback: DataCallback) -> Unsubscribe:
        """Register for inbound serial data chunks."""

    @abstractmethod
    def remove_serial_data_listener(self) -> None:
        """Drop every registered serial data listener."""

    @abstractmethod
    async def cleanup(self) -> None:
        """Release every transport resource. Always safe to call."""
