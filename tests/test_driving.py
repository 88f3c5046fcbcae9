"""Tests for the random-walk driving profile."""

from __future__ import annotations

import random

import pytest

from evbatsim.driving import DrivingProfileGenerator
from evbatsim.energy import EnergyConsumptionTable


@pytest.fixture
def generator() -> DrivingProfileGenerator:
    return DrivingProfileGenerator(EnergyConsumptionTable.default(), rng=random.Random(1234))


def test_speed_stays_within_limits(generator: DrivingProfileGenerator) -> None:
    speed, ambient = 5.0, 18.3
    for _ in range(2000):
        new_speed, new_ambient = generator.advance(speed, ambient, 10.0)
        assert 0.0 <= new_speed <= 10.0
        assert abs(new_speed - speed) < 3.0
        assert abs(new_ambient - ambient) < 0.5
        speed, ambient = new_speed, new_ambient


def test_speed_moves_both_ways(generator: DrivingProfileGenerator) -> None:
    deltas = []
    for _ in range(200):
        speed, _ = generator.advance(30.0, 20.0, 69.44)
        deltas.append(speed - 30.0)
    assert any(delta > 0 for delta in deltas)
    assert any(delta < 0 for delta in deltas)


def test_clamped_at_zero_and_max(generator: DrivingProfileGenerator) -> None:
    speeds = {generator.advance(0.0, 20.0, 0.0)[0] for _ in range(50)}
    assert speeds == {0.0}


def test_ambient_is_not_clamped() -> None:
    generator = DrivingProfileGenerator(EnergyConsumptionTable.default(), rng=random.Random(7))
    _, ambient = generator.advance(10.0, -80.0, 20.0)
    assert -80.5 < ambient < -79.5


def test_energy_draw_converts_to_kmh(generator: DrivingProfileGenerator) -> None:
    kmh, energy = generator.energy_draw(10.0)
    assert kmh == pytest.approx(36.0)
    # between (30, 4.1) and (40, 5.0)
    assert energy == pytest.approx(4.1 + 0.9 * 0.6)


def test_energy_draw_at_standstill(generator: DrivingProfileGenerator) -> None:
    assert generator.energy_draw(0.0) == (0.0, 0.0)


def test_seeded_generators_are_reproducible() -> None:
    table = EnergyConsumptionTable.default()
    first = DrivingProfileGenerator(table, rng=random.Random(42))
    second = DrivingProfileGenerator(table, rng=random.Random(42))
    for _ in range(10):
        assert first.advance(20.0, 18.0, 69.44) == second.advance(20.0, 18.0, 69.44)
