"""Telemetry publisher interface and a log-only implementation."""

from __future__ import annotations

import logging
from typing import Protocol

from evbatsim.models.telemetry import BatteryTelemetry

_logger = logging.getLogger(__name__)


class TelemetryPublisher(Protocol):
    """Structural interface the simulator hands telemetry to.

    ``publish`` must not block on delivery. Implementations raise
    :class:`~evbatsim.exceptions.PublishError` when the record could not
    even be queued.
    """

    def publish(self, record: BatteryTelemetry) -> None:
        ...


class LoggingPublisher:
    """Publisher for dry runs: every payload is logged at DEBUG and dropped."""

    def __init__(self, topic_prefix: str = "") -> None:
        self._topic_prefix = topic_prefix

    def publish(self, record: BatteryTelemetry) -> None:
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("%s%s %s", self._topic_prefix, record.battery_id, record.to_payload().decode("utf-8"))
