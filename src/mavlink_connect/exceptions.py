"""Exception hierarchy for link control, command dispatch and serial setup."""

from __future__ import annotations

import errno

# Phrases in a transport error message that mean the link itself is gone,
# as opposed to a single rejected command.
_LINK_LOSS_PHRASES: tuple[str, ...] = (
    "connection lost",
    "connection closed",
    "connection reset",
    "connection refused",
    "not connected",
    "disconnected",
    "broken pipe",
    "link down",
    "port closed",
    "device not configured",
    "no such device",
)

_LINK_LOSS_ERRNOS: frozenset[int] = frozenset({
    errno.EPIPE,
    errno.ECONNRESET,
    errno.ECONNABORTED,
    errno.ENOTCONN,
    errno.ENODEV,
    errno.ENXIO,
    errno.EIO,
})


class MavlinkConnectError(Exception):
    """Base exception for all mavlink-connect errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)


class InvalidConfigurationError(MavlinkConnectError):
    """A precondition was not met, e.g. no serial device chosen."""


class MalformedInputError(MavlinkConnectError):
    """Hex or text input could not be decoded. Never reaches the transport."""


class LinkFailure(MavlinkConnectError):
    """Base for failures that end an attempt or session in ERROR."""


class HandshakeFailure(LinkFailure):
    """The transport rejected or never completed a connect step."""


class VerificationFailure(LinkFailure):
    """Handshake reported success but the settle check found no link."""


class LinkTimeoutError(LinkFailure):
    """The connection watchdog fired before the attempt resolved."""


class TransportError(LinkFailure):
    """Failure surfaced by the transport mid-session (fetch or send)."""


class ConnectionLostError(TransportError):
    """The transport reports the link itself is gone."""


def is_link_loss(exc: BaseException) -> bool:
    """Decide whether a send failure means the link is lost.

    A plain rejected command returns False and stays a local failure.
    """
    if isinstance(exc, ConnectionLostError):
        return True
    if isinstance(exc, (ConnectionError, EOFError)):
        return True
    if isinstance(exc, OSError) and exc.errno in _LINK_LOSS_ERRNOS:
        return True
    message = str(exc).lower()
    return any(phrase in message for phrase in _LINK_LOSS_PHRASES)


def describe(exc: BaseException) -> str:
    """Render an exception as a single readable line."""
    text = str(exc).strip()
    if not text:
        return type(exc).__name__
    return text
