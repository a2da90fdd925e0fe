"""Pydantic models for serial device enumeration and configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SerialDevice(BaseModel):
    """One serial device from a single scan. Ids are unique within the scan."""

    model_config = {"frozen": True}

    id: int = Field(ge=0)
    path: str = Field(min_length=1)
    name: str = ""
    vendor_id: str | None = None
    product_id: str | None = None

    @property
    def label(self) -> str:
        if self.name and self.name != self.path:
            return f"{self.name} ({self.path})"
        return self.path


class SerialConfig(BaseModel):
    """Resolved device and baud rate for a serial link."""

    model_config = {"frozen": True}

    device: SerialDevice
    baud_rate: int = Field(gt=0)
