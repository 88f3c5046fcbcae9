"""Per-battery thermal, degradation and voltage model.

The model is a two-state machine. In ``NORMAL`` the temperature follows
Joule heating against linear cooling towards 25 °C, the state of health
wears down (faster above 45 °C) and the terminal voltage is the SOC curve
minus the resistive drop. Crossing 70 °C switches to ``THERMAL_RUNAWAY``,
where the temperature grows by 5 % per step and the state of health is
zero. There is no transition back; only :meth:`BatteryPhysicsModel.reset`
leaves runaway.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from enum import StrEnum

from evbatsim._constants import (
    BASE_DEGRADATION,
    COOLING_RATE,
    CRITICAL_FAILURE_TEMP,
    HEATING_COEFFICIENT,
    HIGH_TEMP_DEGRADATION,
    HIGH_TEMP_DEGRADATION_THRESHOLD,
    INITIAL_TEMPERATURE,
    INTERNAL_RESISTANCE,
    MIN_VOLTAGE,
    NOMINAL_VOLTAGE,
    RUNAWAY_MULTIPLIER,
    SOC_VOLTAGE_STEPS,
    THERMAL_RUNAWAY_THRESHOLD,
)

_logger = logging.getLogger(__name__)


class ThermalState(StrEnum):
    NORMAL = "normal"
    THERMAL_RUNAWAY = "thermal_runaway"


@dataclasses.dataclass(slots=True)
class BatteryPhysicsState:
    """Temperature (°C), state of health (%), voltage (V) and thermal state."""

    temperature: float = INITIAL_TEMPERATURE
    state_of_health: float = 100.0
    voltage: float = NOMINAL_VOLTAGE
    thermal_state: ThermalState = ThermalState.NORMAL

    @property
    def in_thermal_runaway(self) -> bool:
        return self.thermal_state is ThermalState.THERMAL_RUNAWAY


def soc_voltage_curve(soc: float) -> float:
    """Open-circuit voltage for a state of charge, as a step function."""
    for threshold, voltage in SOC_VOLTAGE_STEPS:
        if soc >= threshold:
            return voltage
    return MIN_VOLTAGE


def _step_normal(state: BatteryPhysicsState, current: float, time_interval: float, soc: float) -> None:
    power_dissipation = current**2 * INTERNAL_RESISTANCE
    cooling_effect = COOLING_RATE * time_interval * (state.temperature - INITIAL_TEMPERATURE)
    state.temperature += HEATING_COEFFICIENT * power_dissipation - cooling_effect

    state.state_of_health -= BASE_DEGRADATION * time_interval
    if state.temperature > HIGH_TEMP_DEGRADATION_THRESHOLD:
        state.state_of_health -= HIGH_TEMP_DEGRADATION * time_interval
    if state.state_of_health < 0:
        state.state_of_health = 0.0

    resistance = (
        INTERNAL_RESISTANCE
        + 0.02 * (1 - soc)
        + 0.0005 * (state.temperature - INITIAL_TEMPERATURE)
    )
    voltage_drop = current * resistance
    # The nominal-based value is discarded; the SOC curve sets the voltage.
    state.voltage = NOMINAL_VOLTAGE - voltage_drop
    state.voltage = soc_voltage_curve(soc) - voltage_drop

    if state.temperature >= THERMAL_RUNAWAY_THRESHOLD:
        state.thermal_state = ThermalState.THERMAL_RUNAWAY


def _step_runaway(state: BatteryPhysicsState, current: float, _time_interval: float, soc: float) -> None:
    state.temperature *= RUNAWAY_MULTIPLIER
    state.state_of_health = 0.0
    voltage_drop = current * INTERNAL_RESISTANCE
    state.voltage = soc_voltage_curve(soc) - voltage_drop


_TRANSITIONS: dict[ThermalState, Callable[[BatteryPhysicsState, float, float, float], None]] = {
    ThermalState.NORMAL: _step_normal,
    ThermalState.THERMAL_RUNAWAY: _step_runaway,
}


class BatteryPhysicsModel:
    """Mutable physics state of a single battery.

    *on_critical_failure* is called with ``(battery_id, temperature)`` on
    every runaway step at or above the critical temperature. It is purely
    observational; the owning simulation decides when to re-initialize.
    """

    def __init__(
        self,
        battery_id: int = 0,
        *,
        on_critical_failure: Callable[[int, float], None] | None = None,
    ) -> None:
        self._battery_id = battery_id
        self._on_critical_failure = on_critical_failure
        self._state = BatteryPhysicsState()

    @property
    def state(self) -> BatteryPhysicsState:
        return self._state

    @property
    def temperature(self) -> float:
        return self._state.temperature

    @property
    def state_of_health(self) -> float:
        return self._state.state_of_health

    @property
    def voltage(self) -> float:
        return self._state.voltage

    @property
    def in_thermal_runaway(self) -> bool:
        return self._state.in_thermal_runaway

    def step(self, current: float, time_interval: float, state_of_charge: float) -> BatteryPhysicsState:
        """Advance the model by *time_interval* seconds at *current* amperes."""
        state = self._state
        previous = state.thermal_state
        _TRANSITIONS[previous](state, current, time_interval, state_of_charge)

        if previous is ThermalState.NORMAL and state.in_thermal_runaway:
            _logger.warning(
                "Thermal runaway initiated battery_id=%s temperature=%.2f",
                self._battery_id,
                state.temperature,
            )
        elif previous is ThermalState.THERMAL_RUNAWAY and state.temperature >= CRITICAL_FAILURE_TEMP:
            _logger.error(
                "Battery failure battery_id=%s temperature=%.2f",
                self._battery_id,
                state.temperature,
            )
            if self._on_critical_failure is not None:
                self._on_critical_failure(self._battery_id, state.temperature)
        return state

    def reset(self) -> None:
        """Restore nominal state: 25 °C, 100 % SOH, 400 V, ``NORMAL``."""
        self._state = BatteryPhysicsState()
