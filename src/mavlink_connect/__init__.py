"""mavlink-connect - telemetry link controller for MAVLink vehicles."""

from mavlink_connect.config import LinkSettings
from mavlink_connect.core.link import LinkStateMachine
from mavlink_connect.models.link import ConnectionState, LinkMode, LinkStatus

__version__ = "0.1.0"

__all__ = [
    "ConnectionState",
    "LinkMode",
    "LinkSettings",
    "LinkStateMachine",
    "LinkStatus",
]
