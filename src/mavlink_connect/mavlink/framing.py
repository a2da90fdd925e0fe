"""MAVLink v1 heartbeat frames and operator payload decoding.

Frame layout (v1):
    [0xFE, length, sequence, system_id, component_id, message_id,
     payload..., checksum_low, checksum_high]

Frames are packed by pymavlink's v1.0 common dialect, which also applies
the X.25 checksum and the message's CRC_EXTRA.
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass

from pymavlink.dialects.v10 import common as mavlink1

from mavlink_connect.exceptions import MalformedInputError
from mavlink_connect.mavlink.types import (
    GCS_COMPONENT_ID,
    GCS_SYSTEM_ID,
    MAVLINK_PROTOCOL_VERSION,
)

_WHITESPACE_RE = re.compile(r"\s+")
_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


@dataclass(frozen=True)
class HeartbeatFields:
    """HEARTBEAT (#0) fields, defaulting to a ground station identity."""

    mav_type: int = mavlink1.MAV_TYPE_GCS
    autopilot: int = mavlink1.MAV_AUTOPILOT_INVALID
    base_mode: int = 0
    custom_mode: int = 0
    system_status: int = mavlink1.MAV_STATE_ACTIVE
    mavlink_version: int = MAVLINK_PROTOCOL_VERSION


def build_heartbeat_frame(
    sequence: int = 0,
    system_id: int = GCS_SYSTEM_ID,
    component_id: int = GCS_COMPONENT_ID,
    fields: HeartbeatFields | None = None,
) -> bytes:
    """Build a MAVLink v1 HEARTBEAT frame (17 bytes).

    Raises:
        MalformedInputError: A header byte or field is out of range.
    """
    for name, value in (
        ("sequence", sequence),
        ("system_id", system_id),
        ("component_id", component_id),
    ):
        if not 0 <= value <= 0xFF:
            raise MalformedInputError(f"{name} out of range: {value}")

    fields = fields or HeartbeatFields()
    sender = mavlink1.MAVLink(None, srcSystem=system_id, srcComponent=component_id)
    sender.seq = sequence
    message = sender.heartbeat_encode(
        type=fields.mav_type,
        autopilot=fields.autopilot,
        base_mode=fields.base_mode,
        custom_mode=fields.custom_mode,
        system_status=fields.system_status,
        mavlink_version=fields.mavlink_version,
    )
    try:
        return bytes(message.pack(sender))
    except struct.error as exc:
        raise MalformedInputError(f"Heartbeat field out of range: {exc}") from exc


def decode_hex(text: str) -> bytes:
    """Decode whitespace-insensitive hex text, e.g. "FE 09 00".

    Raises:
        MalformedInputError: Empty input, odd digit count or non-hex digits.
    """
    compact = _WHITESPACE_RE.sub("", text)
    if not compact:
        raise MalformedInputError("Hex input is empty")
    if not _HEX_RE.match(compact):
        raise MalformedInputError(f"Hex input contains non-hex characters: {text!r}")
    if len(compact) % 2:
        raise MalformedInputError(
            f"Hex input must have an even number of digits, got {len(compact)}"
        )
    return bytes.fromhex(compact)


def encode_text(text: str) -> bytes:
    """Encode an operator text command as UTF-8 bytes."""
    if not text:
        raise MalformedInputError("Text input is empty")
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise MalformedInputError(f"Text is not valid UTF-8: {exc}") from exc


def format_hex(data: bytes) -> str:
    """Format bytes as spaced upper-case hex."""
    return " ".join(f"{b:02X}" for b in data)
