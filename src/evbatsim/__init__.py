"""evbatsim - EV battery fleet simulator emitting periodic telemetry."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("evbatsim")
except PackageNotFoundError:
    __version__ = "0+local"
from evbatsim.config import SimulatorConfig
from evbatsim.driving import DrivingProfileGenerator
from evbatsim.energy import EnergyConsumptionTable
from evbatsim.exceptions import PublishError, SimulatorConfigError, SimulatorError
from evbatsim.models import BatteryTelemetry
from evbatsim.physics import BatteryPhysicsModel, BatteryPhysicsState, ThermalState, soc_voltage_curve
from evbatsim.publisher import LoggingPublisher, TelemetryPublisher
from evbatsim.simulator import BatterySimulator
from evbatsim.state import AnomalyFlags, BatteryEntityState

__all__ = [
    "__version__",
    "AnomalyFlags",
    "BatteryEntityState",
    "BatteryPhysicsModel",
    "BatteryPhysicsState",
    "BatterySimulator",
    "BatteryTelemetry",
    "DrivingProfileGenerator",
    "EnergyConsumptionTable",
    "LoggingPublisher",
    "PublishError",
    "SimulatorConfig",
    "SimulatorConfigError",
    "SimulatorError",
    "TelemetryPublisher",
    "ThermalState",
    "soc_voltage_curve",
]
