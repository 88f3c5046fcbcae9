"""Bounded random-walk driving profile."""

from __future__ import annotations

import random

from evbatsim._constants import AMBIENT_STEP_MAX, MPS_TO_KMH, SPEED_STEP_MAX
from evbatsim.energy import EnergyConsumptionTable


class DrivingProfileGenerator:
    """Produce the next speed and ambient temperature of one vehicle.

    Each call flips a fair coin per quantity and moves it up or down by a
    uniform step. Speed is clamped to ``[0, max_speed]``; the ambient
    temperature drifts freely.
    """

    def __init__(self, table: EnergyConsumptionTable, *, rng: random.Random | None = None) -> None:
        self._table = table
        self._rng = rng or random.Random()

    def _step(self, limit: float) -> float:
        increase = self._rng.random() < 0.5
        delta = self._rng.random() * limit
        return delta if increase else -delta

    def advance(self, prev_speed_mps: float, prev_ambient: float, max_speed_mps: float) -> tuple[float, float]:
        """Return ``(speed_mps, ambient_temperature)`` for the next tick."""
        speed = prev_speed_mps + self._step(SPEED_STEP_MAX)
        speed = min(max(speed, 0.0), max_speed_mps)
        ambient = prev_ambient + self._step(AMBIENT_STEP_MAX)
        return speed, ambient

    def energy_draw(self, speed_mps: float) -> tuple[float, float]:
        """Return ``(kmh, energy_kwh)`` for a speed in m/s."""
        kmh = speed_mps * MPS_TO_KMH
        return kmh, self._table.lookup(kmh)
