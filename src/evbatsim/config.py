"""Simulator configuration for evbatsim."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any

from evbatsim.exceptions import SimulatorConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class SimulatorConfig:
    """Fleet simulation configuration.

    Parameters
    ----------
    mqtt_broker_url : str
        Broker address, e.g. ``tcp://localhost:1883``. An ``ssl://`` or
        ``mqtts://`` scheme enables TLS.
    mqtt_topic : str
        Topic prefix; each battery publishes to ``<mqtt_topic><battery_id>``.
    mqtt_username : str or None
        Optional broker username.
    mqtt_password : str or None
        Optional broker password.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    interval_seconds : int
        Tick interval of every battery simulation.
    battery_count : int
        Number of simulated batteries (ids ``1..battery_count``).
    battery_voltage_max : float
        Nominal pack voltage in volts, used as the startup applied voltage.
    battery_capacity : float
        Nominal pack capacity in kWh.
    wheel_speed_max : float
        Maximum vehicle speed in m/s.
    car_weight : float
        Vehicle mass in kg.
    car_tire_cr : float
        Tire rolling-resistance coefficient.
    car_width : float
        Vehicle width in m.
    car_height : float
        Vehicle height in m.
    car_drag_cw : float
        Aerodynamic drag coefficient.
    control_host : str
        Bind address of the anomaly control HTTP endpoint.
    control_port : int
        Port of the anomaly control HTTP endpoint.
    control_enabled : bool
        Serve the anomaly control HTTP endpoint.
    """

    mqtt_broker_url: str = "tcp://localhost:1883"
    mqtt_topic: str = "batterytopic/"
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_keepalive: int = 60
    interval_seconds: int = 1
    battery_count: int = 10
    battery_voltage_max: float = 400.0
    battery_capacity: float = 100.0
    wheel_speed_max: float = 69.44
    car_weight: float = 2100.0
    car_tire_cr: float = 0.012
    car_width: float = 1.96
    car_height: float = 1.44
    car_drag_cw: float = 0.24
    control_host: str = "0.0.0.0"
    control_port: int = 8080
    control_enabled: bool = True

    @property
    def frontal_area(self) -> float:
        """Frontal area in m² approximated as width × height."""
        return self.car_width * self.car_height

    def validate(self) -> SimulatorConfig:
        """Reject configurations no battery could be simulated with.

        Returns
        -------
        SimulatorConfig
            ``self``, so the call can be chained.

        Raises
        ------
        SimulatorConfigError
            If a capacity, voltage, count, interval or speed limit is not positive.
        """
        positive = {
            "battery_capacity": self.battery_capacity,
            "battery_voltage_max": self.battery_voltage_max,
            "battery_count": self.battery_count,
            "interval_seconds": self.interval_seconds,
            "wheel_speed_max": self.wheel_speed_max,
        }
        for name, value in positive.items():
            if value <= 0:
                raise SimulatorConfigError(f"{name} must be positive, got {value}")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> SimulatorConfig:
        """Create configuration from ``EVSIM_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        SimulatorConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_CONFIG_MAP: dict[str, tuple[str, Callable[[str], Any]]] = {
            "EVSIM_MQTT_BROKER_URL": ("mqtt_broker_url", str),
            "EVSIM_MQTT_TOPIC": ("mqtt_topic", str),
            "EVSIM_MQTT_USERNAME": ("mqtt_username", str),
            "EVSIM_MQTT_PASSWORD": ("mqtt_password", str),
            "EVSIM_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
            "EVSIM_INTERVAL_SECONDS": ("interval_seconds", int),
            "EVSIM_BATTERY_COUNT": ("battery_count", int),
            "EVSIM_BATTERY_VOLTAGE_MAX": ("battery_voltage_max", float),
            "EVSIM_BATTERY_CAPACITY": ("battery_capacity", float),
            "EVSIM_WHEEL_SPEED_MAX": ("wheel_speed_max", float),
            "EVSIM_CAR_WEIGHT": ("car_weight", float),
            "EVSIM_CAR_TIRE_CR": ("car_tire_cr", float),
            "EVSIM_CAR_WIDTH": ("car_width", float),
            "EVSIM_CAR_HEIGHT": ("car_height", float),
            "EVSIM_CAR_DRAG_CW": ("car_drag_cw", float),
            "EVSIM_CONTROL_HOST": ("control_host", str),
            "EVSIM_CONTROL_PORT": ("control_port", int),
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, (field_name, parse) in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = parse(val)
            except ValueError as exc:
                raise SimulatorConfigError(f"{env_key} has an invalid value: {val!r}") from exc

        if "control_enabled" not in overrides:
            config_kwargs["control_enabled"] = _env_bool(env.get("EVSIM_CONTROL_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
