from __future__ import annotations

import random

import pytest

from evbatsim.config import SimulatorConfig
from evbatsim.exceptions import PublishError
from evbatsim.models.telemetry import BatteryTelemetry
from evbatsim.simulator import BatterySimulator


class RecordingPublisher:
    """In-memory publisher; optionally fails every publish."""

    def __init__(self, *, fail: bool = False) -> None:
        self.records: list[BatteryTelemetry] = []
        self.fail = fail

    def publish(self, record: BatteryTelemetry) -> None:
        if self.fail:
            raise PublishError("broker unavailable", topic=f"batterytopic/{record.battery_id}", return_code=4)
        self.records.append(record)


@pytest.fixture
def config() -> SimulatorConfig:
    return SimulatorConfig(battery_count=3, interval_seconds=1)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def simulator(config: SimulatorConfig, publisher: RecordingPublisher) -> BatterySimulator:
    return BatterySimulator(config, publisher, rng=random.Random(2024))
