"""Run the battery fleet simulator.

Reads ``EVSIM_*`` environment variables, applies command-line overrides,
connects to the MQTT broker and serves the anomaly control endpoint until
SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import logging
import signal
import sys
from typing import Any

from evbatsim._mqtt import MqttBootstrap, MqttTelemetryPublisher
from evbatsim.config import SimulatorConfig
from evbatsim.control import ControlServer
from evbatsim.exceptions import SimulatorConfigError
from evbatsim.publisher import LoggingPublisher, TelemetryPublisher
from evbatsim.simulator import BatterySimulator

_LOG = logging.getLogger("evbatsim")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="evbatsim",
        description="Simulate a fleet of EV batteries and publish telemetry over MQTT.",
    )
    parser.add_argument("--battery-count", type=int, help="Number of simulated batteries.")
    parser.add_argument("--interval", type=int, help="Tick interval in seconds.")
    parser.add_argument("--broker", help="MQTT broker URL, e.g. tcp://localhost:1883.")
    parser.add_argument("--topic", help="Topic prefix; the battery id is appended.")
    parser.add_argument("--control-port", type=int, help="Port of the anomaly control endpoint.")
    parser.add_argument(
        "--no-control",
        action="store_true",
        help="Do not serve the anomaly control endpoint.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log telemetry instead of publishing it.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs (includes every payload).",
    )
    return parser.parse_args(argv)


def _config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    option_map = {
        "battery_count": "battery_count",
        "interval": "interval_seconds",
        "broker": "mqtt_broker_url",
        "topic": "mqtt_topic",
        "control_port": "control_port",
    }
    for arg_name, field_name in option_map.items():
        value = getattr(args, arg_name)
        if value is not None:
            overrides[field_name] = value
    if args.no_control:
        overrides["control_enabled"] = False
    return overrides


def _redacted(config: SimulatorConfig) -> SimulatorConfig:
    if config.mqtt_password is None:
        return config
    return dataclasses.replace(config, mqtt_password="<redacted>")


async def _connect(
    mqtt_publisher: MqttTelemetryPublisher,
    stop_event: asyncio.Event,
) -> bool:
    """Wait for the broker connection; ``False`` when a stop came first."""
    connect_task = asyncio.create_task(mqtt_publisher.start())
    stop_wait = asyncio.create_task(stop_event.wait())
    await asyncio.wait({connect_task, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
    stop_wait.cancel()
    if connect_task.done():
        connect_task.result()
        return True
    connect_task.cancel()
    await asyncio.gather(connect_task, return_exceptions=True)
    return False


async def _serve(
    config: SimulatorConfig,
    bootstrap: MqttBootstrap | None,
    *,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Run until *stop_event* is set; a ``None`` *bootstrap* means a dry run."""
    loop = asyncio.get_running_loop()
    if stop_event is None:
        stop_event = asyncio.Event()
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signum, stop_event.set)

    mqtt_publisher: MqttTelemetryPublisher | None = None
    publisher: TelemetryPublisher
    if bootstrap is None:
        publisher = LoggingPublisher(config.mqtt_topic)
    else:
        mqtt_publisher = MqttTelemetryPublisher(bootstrap, keepalive=config.mqtt_keepalive)
        if not await _connect(mqtt_publisher, stop_event):
            await loop.run_in_executor(None, mqtt_publisher.stop)
            return
        publisher = mqtt_publisher

    simulator = BatterySimulator(config, publisher)
    control: ControlServer | None = None
    try:
        if config.control_enabled:
            control = ControlServer(simulator, host=config.control_host, port=config.control_port)
            await control.start()
        async with simulator:
            await stop_event.wait()
            _LOG.info("Shutdown requested")
    finally:
        if control is not None:
            await control.stop()
        if mqtt_publisher is not None:
            await loop.run_in_executor(None, mqtt_publisher.stop)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = SimulatorConfig.from_env(**_config_overrides(args)).validate()
        bootstrap = None if args.dry_run else MqttBootstrap.from_config(config)
    except SimulatorConfigError as exc:
        print(f"evbatsim: configuration error: {exc}", file=sys.stderr)
        return 2

    _LOG.info("Effective configuration: %s", _redacted(config))
    asyncio.run(_serve(config, bootstrap))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
