"""Transport service contract and the in-memory simulation."""

from mavlink_connect.transport.base import (
    DataCallback,
    RawDeviceInfo,
    StateCallback,
    TransportService,
    Unsubscribe,
)
from mavlink_connect.transport.simulated import SimulatedTransport, list_host_serial_ports

__all__ = [
    "DataCallback",
    "RawDeviceInfo",
    "SimulatedTransport",
    "StateCallback",
    "TransportService",
    "Unsubscribe",
    "list_host_serial_ports",
]
