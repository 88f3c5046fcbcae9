"""Custom exception hierarchy for evbatsim."""

from __future__ import annotations


class SimulatorError(Exception):
    """Base exception for all evbatsim errors."""


class SimulatorConfigError(SimulatorError):
    """Invalid configuration (non-positive capacity, empty lookup table, ...).

    Raised at startup only; no battery simulation is started when the
    configuration is rejected.
    """


class PublishError(SimulatorError):
    """Telemetry could not be handed off to the transport."""

    def __init__(
        self,
        message: str,
        *,
        topic: str = "",
        return_code: int | None = None,
    ) -> None:
        self.topic = topic
        self.return_code = return_code
        super().__init__(message)
