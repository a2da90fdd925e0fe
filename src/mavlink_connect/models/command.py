"""Pydantic models for command dispatch results."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class CommandKind(StrEnum):
    """Outbound payload families."""
    GUIDED = "guided"
    TEXT = "text"
    RAW = "raw"
    HEX = "hex"
    HEARTBEAT = "heartbeat"


class GuidedCommand(StrEnum):
    """Named vehicle commands forwarded as-is to the transport."""
    ARM = "ARM"
    DISARM = "DISARM"
    TAKEOFF = "TAKEOFF"
    LAND = "LAND"
    RTL = "RTL"


class SendResult(BaseModel):
    """Normalized outcome of one send."""

    model_config = {"frozen": True}

    success: bool
    data: Any = None
    error: str | None = None
    link_lost: bool = False


class CommandOutcome(BaseModel):
    """Entry in the ordered command log shown to the operator."""

    model_config = {"frozen": True}

    kind: CommandKind
    label: str
    success: bool
    data: Any = None
    error: str | None = None
    timestamp: float = Field(default_factory=time.time)
