"""Models for link status, mode and connection state."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, model_validator


class LinkStatus(StrEnum):
    """Authoritative link status."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class LinkMode(StrEnum):
    """Transport used for a link."""
    TCP = "tcp"
    UDP = "udp"
    SERIAL = "serial"


# Allowed transitions; anything else is a programming error.
ALLOWED_TRANSITIONS: dict[LinkStatus, frozenset[LinkStatus]] = {
    LinkStatus.DISCONNECTED: frozenset({LinkStatus.CONNECTING, LinkStatus.DISCONNECTED}),
    LinkStatus.CONNECTING: frozenset({
        LinkStatus.CONNECTED, LinkStatus.ERROR, LinkStatus.DISCONNECTED,
    }),
    LinkStatus.CONNECTED: frozenset({LinkStatus.ERROR, LinkStatus.DISCONNECTED}),
    LinkStatus.ERROR: frozenset({LinkStatus.DISCONNECTED, LinkStatus.CONNECTING}),
}


class ConnectionState(BaseModel):
    """Immutable snapshot of the link. Replaced whole on every transition."""

    model_config = {"frozen": True}

    status: LinkStatus = LinkStatus.DISCONNECTED
    mode: LinkMode | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _error_iff_error_status(self) -> ConnectionState:
        if self.status == LinkStatus.ERROR and not self.error:
            raise ValueError("ERROR state requires an error message")
        if self.status != LinkStatus.ERROR and self.error is not None:
            raise ValueError(f"error message not allowed in {self.status} state")
        return self

    @property
    def is_connected(self) -> bool:
        return self.status == LinkStatus.CONNECTED

    def can_transition_to(self, status: LinkStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]
