"""Tests for the battery thermal/degradation/voltage model."""

from __future__ import annotations

import logging

import pytest

from evbatsim.physics import BatteryPhysicsModel, ThermalState, soc_voltage_curve

# I²R heating of 2000 A pushes a 25 °C battery past the runaway threshold in one step.
_RUNAWAY_CURRENT = 2000.0


class TestSocVoltageCurve:
    @pytest.mark.parametrize(
        ("soc", "voltage"),
        [
            (1.0, 400.0),
            (0.9, 400.0),
            (0.89, 390.0),
            (0.55, 360.0),
            (0.5, 360.0),
            (0.3, 340.0),
            (0.1, 320.0),
            (0.09, 300.0),
            (0.0, 300.0),
            (-0.5, 300.0),
        ],
    )
    def test_step_function(self, soc: float, voltage: float) -> None:
        assert soc_voltage_curve(soc) == voltage


class TestNormalState:
    def test_idle_battery_at_baseline_keeps_temperature(self) -> None:
        model = BatteryPhysicsModel(1)
        state = model.step(0.0, 1, 1.0)

        assert state.temperature == 25.0
        assert state.thermal_state is ThermalState.NORMAL
        assert state.voltage == 400.0
        assert state.state_of_health == pytest.approx(100.0 - 0.0001)

    def test_cooling_towards_baseline(self) -> None:
        model = BatteryPhysicsModel(1)
        model.state.temperature = 35.0
        model.step(0.0, 1, 1.0)
        # 35 - 0.2 * (35 - 25)
        assert model.temperature == pytest.approx(33.0)

    def test_resistive_voltage_drop(self) -> None:
        model = BatteryPhysicsModel(1)
        state = model.step(100.0, 1, 0.75)

        heating = 0.0005 * 100.0**2 * 0.0461
        temperature = 25.0 + heating
        resistance = 0.0461 + 0.02 * 0.25 + 0.0005 * (temperature - 25.0)
        assert state.temperature == pytest.approx(temperature)
        assert state.voltage == pytest.approx(380.0 - 100.0 * resistance)

    def test_high_temperature_degrades_faster(self) -> None:
        model = BatteryPhysicsModel(1)
        model.state.temperature = 60.0
        model.step(0.0, 1, 1.0)
        # 60 - 0.2 * 35 = 53 °C, still above 45 °C
        assert model.state_of_health == pytest.approx(100.0 - 0.0001 - 0.0005)

    def test_state_of_health_floors_at_zero(self) -> None:
        model = BatteryPhysicsModel(1)
        model.state.state_of_health = 0.00005
        model.step(0.0, 1, 1.0)
        assert model.state_of_health == 0.0

    def test_runaway_transition(self, caplog: pytest.LogCaptureFixture) -> None:
        model = BatteryPhysicsModel(7)
        with caplog.at_level(logging.WARNING, logger="evbatsim.physics"):
            state = model.step(_RUNAWAY_CURRENT, 1, 0.5)

        temperature = 25.0 + 0.0005 * _RUNAWAY_CURRENT**2 * 0.0461
        resistance = 0.0461 + 0.02 * 0.5 + 0.0005 * (temperature - 25.0)
        assert state.temperature == pytest.approx(temperature)
        assert state.in_thermal_runaway
        assert state.state_of_health == pytest.approx(100.0 - 0.0001 - 0.0005)
        assert state.voltage == pytest.approx(360.0 - _RUNAWAY_CURRENT * resistance)
        assert "Thermal runaway initiated battery_id=7" in caplog.text


class TestThermalRunaway:
    def test_exponential_rise_and_zero_health(self) -> None:
        model = BatteryPhysicsModel(1)
        model.step(_RUNAWAY_CURRENT, 1, 0.5)
        before = model.temperature

        state = model.step(10.0, 5, 0.95)

        assert state.temperature == pytest.approx(before * 1.05)
        assert state.state_of_health == 0.0
        assert state.voltage == pytest.approx(400.0 - 10.0 * 0.0461)

    def test_runaway_is_irreversible(self) -> None:
        model = BatteryPhysicsModel(1)
        model.step(_RUNAWAY_CURRENT, 1, 0.5)
        for _ in range(20):
            model.step(0.0, 1, 1.0)
            assert model.in_thermal_runaway

    def test_critical_failure_is_reported(self, caplog: pytest.LogCaptureFixture) -> None:
        failures: list[tuple[int, float]] = []
        model = BatteryPhysicsModel(3, on_critical_failure=lambda bid, temp: failures.append((bid, temp)))
        model.state.thermal_state = ThermalState.THERMAL_RUNAWAY
        model.state.temperature = 145.0

        with caplog.at_level(logging.ERROR, logger="evbatsim.physics"):
            model.step(0.0, 1, 0.5)

        assert failures == [(3, pytest.approx(152.25))]
        assert "Battery failure battery_id=3" in caplog.text
        # Observational only: the model keeps running.
        model.step(0.0, 1, 0.5)
        assert len(failures) == 2

    def test_no_critical_failure_below_limit(self) -> None:
        failures: list[tuple[int, float]] = []
        model = BatteryPhysicsModel(3, on_critical_failure=lambda bid, temp: failures.append((bid, temp)))
        model.state.thermal_state = ThermalState.THERMAL_RUNAWAY
        model.state.temperature = 100.0
        model.step(0.0, 1, 0.5)
        assert failures == []


def test_reset_restores_nominal_state() -> None:
    model = BatteryPhysicsModel(1)
    model.step(_RUNAWAY_CURRENT, 1, 0.5)
    model.step(_RUNAWAY_CURRENT, 1, 0.5)

    model.reset()

    assert model.temperature == 25.0
    assert model.state_of_health == 100.0
    assert model.voltage == 400.0
    assert model.in_thermal_runaway is False
