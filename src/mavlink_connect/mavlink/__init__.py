"""MAVLink v1 heartbeat construction and payload decoding helpers."""

from mavlink_connect.mavlink.framing import (
    HeartbeatFields,
    build_heartbeat_frame,
    decode_hex,
    encode_text,
    format_hex,
)

__all__ = [
    "HeartbeatFields",
    "build_heartbeat_frame",
    "decode_hex",
    "encode_text",
    "format_hex",
]
