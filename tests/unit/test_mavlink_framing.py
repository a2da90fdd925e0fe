"""Unit tests for MAVLink v1 heartbeat frames and operator payload decoding."""

from __future__ import annotations

import pytest
from pymavlink.dialects.v10 import common as mavlink1

from mavlink_connect.exceptions import MalformedInputError
from mavlink_connect.mavlink.framing import (
    HeartbeatFields,
    build_heartbeat_frame,
    decode_hex,
    encode_text,
    format_hex,
)


def _decode(frame: bytes):
    """Parse a frame with a fresh pymavlink receiver; raises on bad CRC."""
    return mavlink1.MAVLink(None).decode(bytearray(frame))


class TestHeartbeatFrame:
    def test_layout(self):
        frame = build_heartbeat_frame(sequence=7)

        assert len(frame) == 17
        assert frame[0] == 0xFE
        assert frame[1] == 9  # payload length
        assert frame[2] == 7  # sequence
        assert frame[3] == 255  # system id
        assert frame[4] == 190  # component id
        assert frame[5] == 0  # HEARTBEAT message id

    def test_decodes_as_gcs_heartbeat(self):
        msg = _decode(build_heartbeat_frame(sequence=3))

        assert msg.get_type() == "HEARTBEAT"
        assert msg.get_seq() == 3
        assert msg.get_srcSystem() == 255
        assert msg.get_srcComponent() == 190
        assert msg.type == mavlink1.MAV_TYPE_GCS
        assert msg.autopilot == mavlink1.MAV_AUTOPILOT_INVALID
        assert msg.system_status == mavlink1.MAV_STATE_ACTIVE
        assert msg.mavlink_version == 3

    def test_corrupt_checksum_rejected_by_receiver(self):
        frame = bytearray(build_heartbeat_frame())
        frame[-1] ^= 0xFF
        with pytest.raises(mavlink1.MAVError):
            _decode(bytes(frame))

    def test_sequence_changes_checksum(self):
        assert build_heartbeat_frame(sequence=0)[-2:] != build_heartbeat_frame(sequence=1)[-2:]

    def test_custom_fields(self):
        frame = build_heartbeat_frame(
            system_id=1,
            component_id=1,
            fields=HeartbeatFields(mav_type=mavlink1.MAV_TYPE_QUADROTOR, custom_mode=4),
        )
        msg = _decode(frame)
        assert msg.get_srcSystem() == 1
        assert msg.type == mavlink1.MAV_TYPE_QUADROTOR
        assert msg.custom_mode == 4

    @pytest.mark.parametrize("kwargs, match", [
        ({"sequence": 256}, "sequence"),
        ({"system_id": -1}, "system_id"),
        ({"component_id": 300}, "component_id"),
    ])
    def test_out_of_range_header_rejected(self, kwargs, match):
        with pytest.raises(MalformedInputError, match=match):
            build_heartbeat_frame(**kwargs)

    def test_out_of_range_field_rejected(self):
        with pytest.raises(MalformedInputError, match="out of range"):
            build_heartbeat_frame(fields=HeartbeatFields(custom_mode=-1))


class TestDecodeHex:
    def test_spaced_input(self):
        assert decode_hex("FE 09 00") == bytes([0xFE, 0x09, 0x00])

    def test_whitespace_insensitive(self):
        assert decode_hex(" fe\t09\n00 ") == bytes([0xFE, 0x09, 0x00])

    def test_compact_input(self):
        assert decode_hex("DEADbeef") == b"\xde\xad\xbe\xef"

    @pytest.mark.parametrize("text, match", [
        ("FE9", "even number"),
        ("FE 0G", "non-hex"),
        ("0xFE", "non-hex"),
        ("", "empty"),
        ("   ", "empty"),
    ])
    def test_malformed(self, text, match):
        with pytest.raises(MalformedInputError, match=match):
            decode_hex(text)


class TestTextHelpers:
    def test_encode_text_utf8(self):
        assert encode_text("héllo") == "héllo".encode("utf-8")

    def test_encode_text_rejects_empty(self):
        with pytest.raises(MalformedInputError):
            encode_text("")

    def test_encode_text_rejects_lone_surrogate(self):
        with pytest.raises(MalformedInputError, match="UTF-8"):
            encode_text("\ud800")

    def test_format_hex(self):
        assert format_hex(b"\xfe\x09\x00") == "FE 09 00"
