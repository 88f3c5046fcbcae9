"""Wire records emitted by evbatsim."""

from evbatsim.models._base import Rounded2, Rounded4, SimBaseModel
from evbatsim.models.telemetry import BatteryTelemetry

__all__ = [
    "BatteryTelemetry",
    "Rounded2",
    "Rounded4",
    "SimBaseModel",
]
