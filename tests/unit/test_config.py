"""Unit tests for LinkSettings defaults and environment overrides."""

from __future__ import annotations

import pytest

from mavlink_connect.config import DEFAULT_FALLBACK_SERIAL_PATHS, LinkSettings
from mavlink_connect.exceptions import InvalidConfigurationError
from mavlink_connect.models.link import LinkMode


def test_defaults():
    settings = LinkSettings()
    assert settings.poll_interval == 1.0
    assert settings.fallback_serial_paths == DEFAULT_FALLBACK_SERIAL_PATHS
    assert len(settings.fallback_serial_paths) == 4


def test_serial_watchdog_is_longer():
    settings = LinkSettings()
    assert settings.watchdog_timeout(LinkMode.SERIAL) > settings.watchdog_timeout(LinkMode.TCP)
    assert settings.watchdog_timeout(LinkMode.UDP) == settings.network_timeout


def test_from_env_overrides():
    settings = LinkSettings.from_env({
        "MAVLINK_CONNECT_POLL_INTERVAL": "0.5",
        "MAVLINK_CONNECT_DEFAULT_BAUD_RATE": "115200",
        "MAVLINK_CONNECT_FALLBACK_SERIAL_PATHS": "/dev/ttyS0, /dev/ttyS1",
        "UNRELATED": "x",
    })
    assert settings.poll_interval == 0.5
    assert settings.default_baud_rate == 115200
    assert settings.fallback_serial_paths == ("/dev/ttyS0", "/dev/ttyS1")


def test_from_env_ignores_empty_values():
    settings = LinkSettings.from_env({"MAVLINK_CONNECT_POLL_INTERVAL": ""})
    assert settings.poll_interval == 1.0


@pytest.mark.parametrize("env", [
    {"MAVLINK_CONNECT_POLL_INTERVAL": "fast"},
    {"MAVLINK_CONNECT_SERIAL_TIMEOUT": "-1"},
    {"MAVLINK_CONNECT_FALLBACK_SERIAL_PATHS": " , "},
])
def test_from_env_rejects_invalid(env):
    with pytest.raises(InvalidConfigurationError, match="Invalid link settings"):
        LinkSettings.from_env(env)


def test_settings_are_frozen():
    settings = LinkSettings()
    with pytest.raises(ValueError):
        settings.poll_interval = 2.0
