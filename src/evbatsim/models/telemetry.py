"""Per-tick battery telemetry record."""

from __future__ import annotations

from pydantic import Field

from evbatsim.models._base import Rounded2, Rounded4, SimBaseModel


class BatteryTelemetry(SimBaseModel):
    """One telemetry sample of one battery.

    Serialized keys are camelCase (``batteryId``, ``stateOfCharge``, ...)
    except ``kmh`` and ``distance``, which are single words.
    """

    battery_id: int
    state_of_charge: Rounded4
    """Fraction of nominal capacity remaining, nominally 0..1."""
    state_of_health: Rounded4 = Field(ge=0.0)
    """Degradation indicator, 100 = new."""
    battery_current: Rounded2
    """Amperes."""
    battery_voltage: Rounded2
    """Volts."""
    kmh: Rounded2
    distance: Rounded2
    """Cumulative km since the last re-initialization."""
    battery_temp: Rounded2
    ambient_temp: Rounded2

    def to_payload(self) -> bytes:
        """Compact JSON payload as published to the broker."""
        return self.model_dump_json(by_alias=True).encode("utf-8")
