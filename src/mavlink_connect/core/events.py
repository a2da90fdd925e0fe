"""Messages pushed by the transport and applied by the link event pump."""

from __future__ import annotations

from dataclasses import dataclass

from mavlink_connect.models.link import ConnectionState


@dataclass(frozen=True)
class TransportStateChanged:
    """The transport reported a state transition."""
    state: ConnectionState


@dataclass(frozen=True)
class DataReceived:
    """A chunk of inbound serial data."""
    data: bytes


LinkEvent = TransportStateChanged | DataReceived
