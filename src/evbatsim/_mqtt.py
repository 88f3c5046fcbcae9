"""Internal MQTT bootstrap and threaded publish runtime."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from evbatsim._constants import DEFAULT_MQTT_PORT, DEFAULT_MQTTS_PORT, MQTT_CONNECT_RETRY_SECONDS, MQTT_QOS
from evbatsim.config import SimulatorConfig
from evbatsim.exceptions import PublishError, SimulatorConfigError
from evbatsim.models.telemetry import BatteryTelemetry

_TLS_SCHEMES = frozenset({"ssl", "mqtts", "tls"})


@dataclass(frozen=True)
class MqttBootstrap:
    """Broker details required to connect."""

    broker_host: str
    broker_port: int
    use_tls: bool
    topic_prefix: str
    username: str | None = None
    password: str | None = None

    @classmethod
    def from_config(cls, config: SimulatorConfig) -> MqttBootstrap:
        host, port, use_tls = parse_broker_url(config.mqtt_broker_url)
        return cls(
            broker_host=host,
            broker_port=port,
            use_tls=use_tls,
            topic_prefix=config.mqtt_topic,
            username=config.mqtt_username,
            password=config.mqtt_password,
        )

    def topic_for(self, battery_id: int) -> str:
        return f"{self.topic_prefix}{battery_id}"


def parse_broker_url(raw_broker: str) -> tuple[str, int, bool]:
    """Split ``[scheme://]host[:port][/...]`` into ``(host, port, use_tls)``."""
    value = raw_broker.strip()
    if not value:
        raise SimulatorConfigError("mqtt_broker_url is empty")

    use_tls = False
    if "://" in value:
        scheme, value = value.split("://", 1)
        use_tls = scheme.lower() in _TLS_SCHEMES
    if "/" in value:
        value = value.split("/", 1)[0]

    default_port = DEFAULT_MQTTS_PORT if use_tls else DEFAULT_MQTT_PORT
    host, sep, maybe_port = value.rpartition(":")
    port = default_port
    if sep and maybe_port.isdigit():
        value, port = host, int(maybe_port)
    if not value:
        raise SimulatorConfigError(f"mqtt_broker_url has no host: {raw_broker!r}")
    return value, port, use_tls


class MqttTelemetryPublisher:
    """Threaded paho-mqtt runtime publishing telemetry to ``<prefix><battery_id>``.

    ``publish`` only queues the message on the paho client; delivery,
    QoS 1 acknowledgment and reconnection happen on paho's network thread.
    """

    def __init__(
        self,
        bootstrap: MqttBootstrap,
        *,
        keepalive: int = 60,
        retry_seconds: float = MQTT_CONNECT_RETRY_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bootstrap = bootstrap
        self._keepalive = keepalive
        self._retry_seconds = retry_seconds
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._stopping = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            clean_session=True,
        )
        client.enable_logger(self._logger)
        client.reconnect_delay_set(min_delay=1, max_delay=120)
        if self._bootstrap.username:
            client.username_pw_set(self._bootstrap.username, self._bootstrap.password)
        if self._bootstrap.use_tls:
            client.tls_set()

        def on_connect(
            _client: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.info(
                "MQTT connected host=%s port=%s",
                self._bootstrap.broker_host,
                self._bootstrap.broker_port,
            )

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect
        return client

    def connect(self) -> None:
        """Connect once and start the network loop (blocking)."""
        self._teardown()
        client = self._build_client()
        client.connect(self._bootstrap.broker_host, self._bootstrap.broker_port, keepalive=self._keepalive)
        client.loop_start()
        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    async def start(self) -> None:
        """Connect, retrying every ``retry_seconds`` until success or :meth:`stop`.

        Cancelling this coroutine waits for an in-flight connect attempt to
        finish in its worker thread and tears the client down again.
        Exceptions other than :class:`OSError` propagate.
        """
        loop = asyncio.get_running_loop()
        self._stopping = False
        while not self._stopping:
            attempt = loop.run_in_executor(None, self.connect)
            try:
                await asyncio.shield(attempt)
                return
            except asyncio.CancelledError:
                await asyncio.gather(attempt, return_exceptions=True)
                await loop.run_in_executor(None, self._teardown)
                raise
            except OSError as exc:
                self._logger.warning(
                    "MQTT broker %s:%s unreachable (%s), retrying in %.0f s",
                    self._bootstrap.broker_host,
                    self._bootstrap.broker_port,
                    exc,
                    self._retry_seconds,
                )
                await asyncio.sleep(self._retry_seconds)

    def publish(self, record: BatteryTelemetry) -> None:
        """Queue *record* on its battery topic without waiting for delivery."""
        topic = self._bootstrap.topic_for(record.battery_id)
        client = self._client
        if client is None:
            raise PublishError("MQTT client not started", topic=topic)
        info = client.publish(topic, record.to_payload(), qos=MQTT_QOS)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(
                f"Publish to {topic} failed: {mqtt.error_string(info.rc)}",
                topic=topic,
                return_code=info.rc,
            )

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        self._stopping = True
        self._teardown()

    def _teardown(self) -> None:
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
