"""Fleet scheduler: one independent periodic tick loop per battery."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable, Iterator
from typing import Any

from evbatsim._constants import (
    AIR_DENSITY,
    ANOMALY_VOLTAGE_DROP,
    GRAVITY,
    JOULES_PER_KWH,
    PHYSICS_STEP_SECONDS,
    RESET_STATE_OF_CHARGE,
    RESET_STATE_OF_HEALTH,
)
from evbatsim.config import SimulatorConfig
from evbatsim.driving import DrivingProfileGenerator
from evbatsim.energy import EnergyConsumptionTable
from evbatsim.exceptions import PublishError, SimulatorError
from evbatsim.models.telemetry import BatteryTelemetry
from evbatsim.publisher import TelemetryPublisher
from evbatsim.state import AnomalyFlags, BatteryEntityState

_logger = logging.getLogger(__name__)


def air_resistance_loss(speed_mps: float, interval_seconds: float, config: SimulatorConfig) -> float:
    """Energy in kWh spent against aerodynamic drag over one interval."""
    drag_force = AIR_DENSITY / 2 * config.car_drag_cw * config.frontal_area * speed_mps**2
    return drag_force * speed_mps * interval_seconds / JOULES_PER_KWH


def rolling_resistance_loss(speed_mps: float, interval_seconds: float, config: SimulatorConfig) -> float:
    """Energy in kWh spent against tire rolling resistance over one interval."""
    rolling_force = config.car_weight * GRAVITY * config.car_tire_cr
    return rolling_force * speed_mps * interval_seconds / JOULES_PER_KWH


class BatterySimulator:
    """Simulate ``config.battery_count`` batteries and publish their telemetry.

    Usage::

        async with BatterySimulator(config, publisher) as simulator:
            simulator.enable_anomaly(3)
            await asyncio.sleep(60)

    Every battery owns its state and its random source; ticks of different
    batteries never touch each other's state. The per-battery anomaly flag
    is the only value meant to be written from outside a tick.
    """

    def __init__(
        self,
        config: SimulatorConfig,
        publisher: TelemetryPublisher,
        *,
        table: EnergyConsumptionTable | None = None,
        rng: random.Random | None = None,
        on_critical_failure: Callable[[int, float], None] | None = None,
    ) -> None:
        self._config = config.validate()
        self._publisher = publisher
        self._table = table or EnergyConsumptionTable.default()
        self._on_critical_failure = on_critical_failure
        self._anomaly = AnomalyFlags(config.battery_count)

        seed_source = rng or random.Random()
        self._drivers: dict[int, DrivingProfileGenerator] = {}
        self._entities: dict[int, BatteryEntityState] = {}
        for battery_id in self.battery_ids:
            self._drivers[battery_id] = DrivingProfileGenerator(
                self._table,
                rng=random.Random(seed_source.getrandbits(64)),
            )
            self._entities[battery_id] = self._initial_state(battery_id)

        self._tasks: dict[int, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> BatterySimulator:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Fleet access
    # ------------------------------------------------------------------

    @property
    def config(self) -> SimulatorConfig:
        return self._config

    @property
    def table(self) -> EnergyConsumptionTable:
        return self._table

    @property
    def battery_ids(self) -> range:
        return range(1, self._config.battery_count + 1)

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def entity(self, battery_id: int) -> BatteryEntityState:
        try:
            return self._entities[battery_id]
        except KeyError:
            raise SimulatorError(f"Unknown battery id {battery_id}") from None

    def __iter__(self) -> Iterator[BatteryEntityState]:
        return iter(self._entities.values())

    # ------------------------------------------------------------------
    # Anomaly toggle
    # ------------------------------------------------------------------

    def enable_anomaly(self, battery_id: int) -> bool:
        """Turn on the voltage-drop anomaly; ``False`` if the id is not simulated."""
        return self._set_anomaly(battery_id, True)

    def disable_anomaly(self, battery_id: int) -> bool:
        """Turn off the voltage-drop anomaly; ``False`` if the id is not simulated."""
        return self._set_anomaly(battery_id, False)

    def anomaly_enabled(self, battery_id: int) -> bool:
        return self._anomaly.get(battery_id)

    def _set_anomaly(self, battery_id: int, enabled: bool) -> bool:
        known = self._anomaly.set(battery_id, enabled)
        if known:
            _logger.info("Voltage drop anomaly %s battery_id=%s", "enabled" if enabled else "disabled", battery_id)
        else:
            _logger.warning("Ignoring anomaly toggle for unknown battery_id=%s", battery_id)
        return known

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def _initial_state(self, battery_id: int) -> BatteryEntityState:
        _logger.info("Initialize battery simulation battery_id=%s", battery_id)
        return BatteryEntityState.initial(
            battery_id,
            self._config,
            on_critical_failure=self._on_critical_failure,
        )

    def reinitialize(self, battery_id: int) -> None:
        """Reset a battery to startup defaults, anomaly flag included."""
        self._entities[battery_id] = self._initial_state(battery_id)
        self._anomaly.set(battery_id, False)

    def tick(self, battery_id: int) -> BatteryTelemetry:
        """Advance one battery by one interval, publish and return its telemetry."""
        config = self._config
        interval = config.interval_seconds
        entity = self.entity(battery_id)
        driver = self._drivers[battery_id]

        entity.speed, entity.ambient_temperature = driver.advance(
            entity.speed,
            entity.ambient_temperature,
            config.wheel_speed_max,
        )
        speed = entity.speed
        kmh, energy_draw = driver.energy_draw(speed)

        entity.driving_distance += speed * interval / 1000

        energy_consumption = energy_draw / 3600 * interval
        entity.remaining_capacity -= (
            energy_consumption
            + air_resistance_loss(speed, interval, config)
            + rolling_resistance_loss(speed, interval, config)
        )
        state_of_charge = entity.remaining_capacity / config.battery_capacity

        # kW → W over the voltage applied at the end of the previous tick.
        if entity.applied_voltage == 0:
            battery_current = 0.0
        else:
            battery_current = energy_draw * 1000 / entity.applied_voltage

        physics = entity.physics
        physics.step(battery_current, PHYSICS_STEP_SECONDS, state_of_charge)

        if self._anomaly.get(battery_id):
            entity.applied_voltage = max(entity.applied_voltage - ANOMALY_VOLTAGE_DROP, 0.0)
        else:
            entity.applied_voltage = physics.voltage

        record = BatteryTelemetry(
            battery_id=battery_id,
            state_of_charge=state_of_charge,
            state_of_health=physics.state_of_health,
            battery_current=battery_current,
            battery_voltage=entity.applied_voltage,
            kmh=kmh,
            distance=entity.driving_distance,
            battery_temp=physics.temperature,
            ambient_temp=entity.ambient_temperature,
        )
        self._emit(record)

        if physics.state_of_health <= RESET_STATE_OF_HEALTH or state_of_charge <= RESET_STATE_OF_CHARGE:
            _logger.info(
                "Re-initializing battery_id=%s state_of_health=%.4f state_of_charge=%.4f",
                battery_id,
                physics.state_of_health,
                state_of_charge,
            )
            self.reinitialize(battery_id)
        return record

    def _emit(self, record: BatteryTelemetry) -> None:
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("Telemetry %s", record.to_payload().decode("utf-8"))
        try:
            self._publisher.publish(record)
        except PublishError as exc:
            _logger.warning("Telemetry publish failed battery_id=%s: %s", record.battery_id, exc)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def _run(self, battery_id: int) -> None:
        loop = asyncio.get_running_loop()
        interval = self._config.interval_seconds
        next_at = loop.time()
        while True:
            self.tick(battery_id)
            # Fixed-rate: the schedule follows the loop clock, not tick duration.
            next_at += interval
            await asyncio.sleep(max(0.0, next_at - loop.time()))

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Battery simulation %s stopped", task.get_name(), exc_info=exc)

    def start(self) -> None:
        """Schedule every battery; the first tick runs immediately."""
        if self.is_running:
            return
        for battery_id in self.battery_ids:
            task = asyncio.create_task(self._run(battery_id), name=f"battery-{battery_id}")
            task.add_done_callback(self._on_task_done)
            self._tasks[battery_id] = task
        _logger.info(
            "Started %s battery simulations interval=%ss",
            len(self._tasks),
            self._config.interval_seconds,
        )

    async def stop_battery(self, battery_id: int) -> None:
        """Stop scheduling one battery; its state is kept."""
        task = self._tasks.pop(battery_id, None)
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def stop(self) -> None:
        """Stop scheduling every battery. A running tick is never interrupted."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            _logger.info("Stopped %s battery simulations", len(tasks))
