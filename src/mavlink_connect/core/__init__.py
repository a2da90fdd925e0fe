"""Link lifecycle: state machine, watchdog, poller, dispatcher and serial setup."""

from mavlink_connect.core.dispatcher import CommandDispatcher, safe_call
from mavlink_connect.core.link import LinkStateMachine
from mavlink_connect.core.poller import TelemetryPoller
from mavlink_connect.core.serial_config import COMMON_BAUD_RATES, SerialConfigResolver
from mavlink_connect.core.watchdog import LivenessWatchdog, PendingAttempt

__all__ = [
    "COMMON_BAUD_RATES",
    "CommandDispatcher",
    "LinkStateMachine",
    "LivenessWatchdog",
    "PendingAttempt",
    "SerialConfigResolver",
    "TelemetryPoller",
    "safe_call",
]
