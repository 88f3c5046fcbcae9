from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import pytest

from evbatsim._mqtt import MqttBootstrap, MqttTelemetryPublisher
from evbatsim.__main__ import _config_overrides, _parse_args, _redacted, _serve, main
from evbatsim.config import SimulatorConfig


@dataclass
class _Info:
    rc: int = 0


class _FakeClient:
    def __init__(self) -> None:
        self.published: list[str] = []
        self.disconnected = False
        self.loop_stopped = False

    def publish(self, topic: str, payload: bytes, qos: int = 0) -> _Info:
        self.published.append(topic)
        return _Info()

    def disconnect(self) -> None:
        self.disconnected = True

    def loop_stop(self) -> None:
        self.loop_stopped = True


def _config() -> SimulatorConfig:
    return SimulatorConfig(battery_count=2, control_enabled=False)


def _bootstrap() -> MqttBootstrap:
    return MqttBootstrap(broker_host="broker", broker_port=1883, use_tls=False, topic_prefix="batterytopic/")


def test_cli_overrides_map_to_config_fields() -> None:
    args = _parse_args(["--battery-count", "4", "--interval", "2", "--topic", "fleet/", "--no-control"])

    assert _config_overrides(args) == {
        "battery_count": 4,
        "interval_seconds": 2,
        "mqtt_topic": "fleet/",
        "control_enabled": False,
    }


def test_configuration_error_exits_with_code_2(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--battery-count", "0", "--dry-run"]) == 2
    assert "battery_count must be positive" in capsys.readouterr().err


def test_broker_without_host_exits_with_code_2(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--broker", "tcp://", "--no-control"]) == 2
    assert "mqtt_broker_url has no host" in capsys.readouterr().err


def test_redacted_config_hides_broker_password() -> None:
    config = SimulatorConfig(mqtt_username="sim", mqtt_password="secret")

    shown = repr(_redacted(config))

    assert "secret" not in shown
    assert "mqtt_password='<redacted>'" in shown
    assert "mqtt_username='sim'" in shown
    assert _redacted(SimulatorConfig()).mqtt_password is None


@pytest.mark.asyncio
async def test_serve_dry_run_stops_on_event(caplog: pytest.LogCaptureFixture) -> None:
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, stop_event.set)

    with caplog.at_level(logging.INFO, logger="evbatsim"):
        await asyncio.wait_for(_serve(_config(), None, stop_event=stop_event), 2)

    assert "Shutdown requested" in caplog.text
    assert "Stopped 2 battery simulations" in caplog.text


@pytest.mark.asyncio
async def test_serve_publishes_after_connect(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakeClient()

    def fake_connect(self: Any) -> None:
        self._client = client
        self._running = True

    monkeypatch.setattr(MqttTelemetryPublisher, "connect", fake_connect)
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, stop_event.set)

    await asyncio.wait_for(_serve(_config(), _bootstrap(), stop_event=stop_event), 2)

    assert sorted(client.published) == ["batterytopic/1", "batterytopic/2"]
    assert client.disconnected
    assert client.loop_stopped


@pytest.mark.asyncio
async def test_serve_raises_unexpected_connect_error(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def failing_connect(self: Any) -> None:
        raise ValueError("Invalid host.")

    monkeypatch.setattr(MqttTelemetryPublisher, "connect", failing_connect)

    with caplog.at_level(logging.INFO, logger="evbatsim"), pytest.raises(ValueError, match="Invalid host"):
        await asyncio.wait_for(_serve(_config(), _bootstrap(), stop_event=asyncio.Event()), 2)

    assert "Telemetry publish failed" not in caplog.text
    assert "Started" not in caplog.text


@pytest.mark.asyncio
async def test_serve_stop_during_connect_tears_down_client(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakeClient()
    connecting = asyncio.Event()
    loop = asyncio.get_running_loop()

    def slow_connect(self: Any) -> None:
        loop.call_soon_threadsafe(connecting.set)
        # Finishes after the stop request arrives.
        time.sleep(0.1)
        self._client = client
        self._running = True

    monkeypatch.setattr(MqttTelemetryPublisher, "connect", slow_connect)
    stop_event = asyncio.Event()

    serving = asyncio.create_task(_serve(_config(), _bootstrap(), stop_event=stop_event))
    await connecting.wait()
    stop_event.set()
    await asyncio.wait_for(serving, 2)

    assert client.published == []
    assert client.disconnected
    assert client.loop_stopped
