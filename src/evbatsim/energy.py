"""Speed → energy draw lookup with linear interpolation."""

from __future__ import annotations

import bisect
from collections.abc import Iterable

from evbatsim._constants import DEFAULT_ENERGY_SAMPLES
from evbatsim.exceptions import SimulatorConfigError


def _interpolate(x1: float, y1: float, x2: float, y2: float, x: float) -> float:
    return y1 + (y2 - y1) * (x - x1) / (x2 - x1)


class EnergyConsumptionTable:
    """Immutable ordered ``(speed_kmh, energy_kwh)`` samples.

    The table is built once at startup and shared read-only by every
    battery simulation.
    """

    __slots__ = ("_speeds", "_energies")

    def __init__(self, samples: Iterable[tuple[float, float]]) -> None:
        pairs = [(float(speed), float(energy)) for speed, energy in samples]
        if not pairs:
            raise SimulatorConfigError("energy lookup table is empty")
        for (prev_speed, prev_energy), (speed, energy) in zip(pairs, pairs[1:]):
            if speed <= prev_speed:
                raise SimulatorConfigError(
                    f"energy lookup speeds must be strictly increasing ({prev_speed} -> {speed})"
                )
            if energy < prev_energy:
                raise SimulatorConfigError(
                    f"energy draw must not decrease with speed ({prev_speed}:{prev_energy} -> {speed}:{energy})"
                )
        self._speeds: tuple[float, ...] = tuple(speed for speed, _ in pairs)
        self._energies: tuple[float, ...] = tuple(energy for _, energy in pairs)

    @classmethod
    def default(cls) -> EnergyConsumptionTable:
        """Table of fleet-measured samples from 0 to 250 km/h."""
        return cls(DEFAULT_ENERGY_SAMPLES)

    @property
    def samples(self) -> tuple[tuple[float, float], ...]:
        return tuple(zip(self._speeds, self._energies))

    def __len__(self) -> int:
        return len(self._speeds)

    def lookup(self, speed_kmh: float) -> float:
        """Return the energy draw in kWh for *speed_kmh*.

        Exact samples are returned as stored. Speeds outside the table
        return the nearest boundary sample; there is no extrapolation.
        """
        speeds = self._speeds
        # Index of the first sample at or above the speed (the ceiling).
        upper = bisect.bisect_left(speeds, speed_kmh)
        if upper < len(speeds) and speeds[upper] == speed_kmh:
            return self._energies[upper]
        if upper == 0:
            return self._energies[0]
        if upper == len(speeds):
            return self._energies[-1]
        lower = upper - 1
        return _interpolate(
            speeds[lower],
            self._energies[lower],
            speeds[upper],
            self._energies[upper],
            speed_kmh,
        )
