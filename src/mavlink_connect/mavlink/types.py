"""MAVLink identities used by this ground station."""

from __future__ import annotations

# Ground control station identity (MAVLink common.xml)
GCS_SYSTEM_ID = 255
GCS_COMPONENT_ID = 190  # MAV_COMP_ID_MISSIONPLANNER

MAVLINK_PROTOCOL_VERSION = 3
