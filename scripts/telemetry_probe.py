#!/usr/bin/env python3
"""Passive MQTT probe for evbatsim telemetry.

Subscribes to ``<topic prefix>+`` on the configured broker, validates each
payload against :class:`evbatsim.models.BatteryTelemetry` and prints it.
Use this to watch a running simulator or to check per-battery cadence.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import paho.mqtt.client as mqtt  # noqa: E402
from pydantic import ValidationError  # noqa: E402

from evbatsim._mqtt import MqttBootstrap  # noqa: E402
from evbatsim.config import SimulatorConfig  # noqa: E402
from evbatsim.models import BatteryTelemetry  # noqa: E402

_LOG = logging.getLogger("telemetry_probe")


@dataclass
class ProbeStats:
    started_at: float
    total_messages: int = 0
    invalid: int = 0
    last_seen: dict[int, float] = field(default_factory=dict)

    def on_record(self, battery_id: int, now: float) -> float | None:
        previous = self.last_seen.get(battery_id)
        self.last_seen[battery_id] = now
        return None if previous is None else now - previous


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Passive MQTT probe for evbatsim telemetry.")
    parser.add_argument("--broker", help="Broker URL (defaults to EVSIM_MQTT_BROKER_URL).")
    parser.add_argument("--topic", help="Topic prefix (defaults to EVSIM_MQTT_TOPIC).")
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument("--json", action="store_true", help="Pretty-print payloads.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s      : {runtime:.1f}")
    print(f"[probe]   total_messages : {stats.total_messages}")
    print(f"[probe]   invalid        : {stats.invalid}")
    print(f"[probe]   batteries_seen : {len(stats.last_seen)}")


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, Any] = {}
    if args.broker:
        overrides["mqtt_broker_url"] = args.broker
    if args.topic:
        overrides["mqtt_topic"] = args.topic
    bootstrap = MqttBootstrap.from_config(SimulatorConfig.from_env(**overrides))
    subscription = f"{bootstrap.topic_prefix}+"

    stats = ProbeStats(started_at=time.time())
    should_stop = False

    def stop_handler(_signum: int, _frame: Any) -> None:
        nonlocal should_stop
        should_stop = True

    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGTERM, stop_handler)

    client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)
    client.enable_logger(_LOG)
    if bootstrap.username:
        client.username_pw_set(bootstrap.username, bootstrap.password)
    if bootstrap.use_tls:
        client.tls_set()

    def on_connect(
        c: mqtt.Client,
        _userdata: Any,
        _flags: mqtt.ConnectFlags,
        reason_code: mqtt.ReasonCode,
        _properties: mqtt.Properties | None,
    ) -> None:
        if reason_code.is_failure:
            print(f"[probe] MQTT connect failed: {reason_code}", file=sys.stderr)
            c.disconnect()
            return
        print(f"[probe] Connected. Subscribing to {subscription}")
        c.subscribe(subscription, qos=1)

    def on_message(_client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        now = time.time()
        stats.total_messages += 1
        try:
            record = BatteryTelemetry.model_validate_json(msg.payload)
        except ValidationError as exc:
            stats.invalid += 1
            print(f"[probe] invalid payload on {msg.topic}: {exc.error_count()} errors")
            return

        delta = stats.on_record(record.battery_id, now)
        gap_text = "first" if delta is None else f"{delta:.1f}s"
        payload = record.model_dump(by_alias=True)
        if args.json:
            print(f"[probe] {msg.topic} gap={gap_text}\n{json.dumps(payload, indent=2)}")
        else:
            print(f"[probe] {msg.topic} gap={gap_text} {json.dumps(payload)}")

    client.on_connect = on_connect
    client.on_message = on_message

    print(f"[probe] Connecting to {bootstrap.broker_host}:{bootstrap.broker_port}...")
    try:
        client.connect(bootstrap.broker_host, bootstrap.broker_port)
        client.loop_start()
        while not should_stop:
            if args.duration > 0 and (time.time() - stats.started_at) >= args.duration:
                print(f"[probe] Reached --duration={args.duration}s, stopping.")
                break
            time.sleep(1.0)
    except OSError as exc:
        print(f"[probe] Connection failed: {exc}", file=sys.stderr)
        return 2
    finally:
        try:
            client.disconnect()
        finally:
            client.loop_stop()

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
