"""Unit tests for the mavlink-connect CLI."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from mavlink_connect.cli.main import cli

FAST_ENV = {
    "MAVLINK_CONNECT_SETTLE_INTERVAL": "0.01",
    "MAVLINK_CONNECT_POLL_INTERVAL": "0.02",
}


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr("mavlink_connect.cli.main.setup_logging", lambda **kwargs: None)


@pytest.fixture
def no_host_ports(monkeypatch):
    monkeypatch.setattr("mavlink_connect.transport.simulated.list_host_serial_ports", lambda: [])


def test_hex_decodes():
    result = CliRunner().invoke(cli, ["hex", "fe 09 00"])
    assert result.exit_code == 0
    assert "3 byte(s): FE 09 00" in result.output


def test_hex_rejects_odd_length():
    result = CliRunner().invoke(cli, ["hex", "FE9"])
    assert result.exit_code != 0
    assert "even number" in result.output


def test_heartbeat_json():
    result = CliRunner().invoke(cli, ["--json-output", "heartbeat", "--sequence", "3"])
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["length"] == 17
    assert payload["frame"][:3] == [0xFE, 9, 3]


def test_scan_falls_back(no_host_ports):
    result = CliRunner().invoke(cli, ["scan"])
    assert result.exit_code == 0
    assert "conventional paths" in result.output
    assert "*[0] /dev/ttyUSB0" in result.output


def test_connect_streams_and_disconnects():
    result = CliRunner(env=FAST_ENV).invoke(
        cli, ["connect", "--mode", "udp", "--duration", "0.2", "--command", "ARM"]
    )
    assert result.exit_code == 0, result.output
    assert "Connected over UDP" in result.output
    assert "ARM: ARM ACCEPTED" in result.output
    assert "Disconnected" in result.output


def test_connect_serial_on_fallback_device(no_host_ports):
    result = CliRunner(env=FAST_ENV).invoke(
        cli, ["connect", "--mode", "serial", "--baud", "115200", "--duration", "0.05"]
    )
    assert result.exit_code == 0, result.output
    assert "Connected over SERIAL" in result.output


def test_connect_rejects_bad_baud(no_host_ports):
    result = CliRunner(env=FAST_ENV).invoke(cli, ["connect", "--mode", "serial", "--baud", "fast"])
    assert result.exit_code != 0
    assert "Invalid baud rate" in result.output
