"""Per-battery simulation state.

Each :class:`BatteryEntityState` is owned by exactly one battery's tick
loop. The anomaly flags are kept apart in :class:`AnomalyFlags` because
they are the only values written from outside that loop.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Callable

from evbatsim._constants import INITIAL_AMBIENT_TEMPERATURE, INITIAL_SPEED_FRACTION
from evbatsim.config import SimulatorConfig
from evbatsim.physics import BatteryPhysicsModel


@dataclasses.dataclass(slots=True)
class BatteryEntityState:
    """Mutable driving and electrical state of one battery."""

    battery_id: int
    remaining_capacity: float
    """kWh."""
    driving_distance: float
    """km."""
    speed: float
    """m/s."""
    ambient_temperature: float
    applied_voltage: float
    physics: BatteryPhysicsModel

    @classmethod
    def initial(
        cls,
        battery_id: int,
        config: SimulatorConfig,
        *,
        on_critical_failure: Callable[[int, float], None] | None = None,
    ) -> BatteryEntityState:
        """Startup defaults: full capacity, zero distance, nominal voltage, half speed."""
        return cls(
            battery_id=battery_id,
            remaining_capacity=config.battery_capacity,
            driving_distance=0.0,
            speed=config.wheel_speed_max * INITIAL_SPEED_FRACTION,
            ambient_temperature=INITIAL_AMBIENT_TEMPERATURE,
            applied_voltage=config.battery_voltage_max,
            physics=BatteryPhysicsModel(battery_id, on_critical_failure=on_critical_failure),
        )


class AnomalyFlags:
    """Voltage-drop anomaly switch per battery id ``1..battery_count``.

    Each id has its own lock so a toggle never contends with another
    battery's tick. Unknown ids are ignored on write and read as ``False``.
    """

    def __init__(self, battery_count: int) -> None:
        self._flags: dict[int, bool] = {battery_id: False for battery_id in range(1, battery_count + 1)}
        self._locks: dict[int, threading.Lock] = {battery_id: threading.Lock() for battery_id in self._flags}

    def __contains__(self, battery_id: object) -> bool:
        return battery_id in self._flags

    def set(self, battery_id: int, enabled: bool) -> bool:
        """Set the flag; return ``False`` if *battery_id* is not in the fleet."""
        lock = self._locks.get(battery_id)
        if lock is None:
            return False
        with lock:
            self._flags[battery_id] = enabled
        return True

    def get(self, battery_id: int) -> bool:
        lock = self._locks.get(battery_id)
        if lock is None:
            return False
        with lock:
            return self._flags[battery_id]
