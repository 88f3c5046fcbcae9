"""HTTP control plane for toggling the voltage-drop anomaly per battery.

Routes::

    GET /bms/enableVoltageDrop/{batteryId}
    GET /bms/disableVoltageDrop/{batteryId}

Both answer with a plain-text acknowledgment. Ids outside the simulated
fleet are acknowledged but change nothing.
"""

from __future__ import annotations

import logging

from aiohttp import web

from evbatsim.simulator import BatterySimulator

_logger = logging.getLogger(__name__)

SIMULATOR_KEY: web.AppKey[BatterySimulator] = web.AppKey("simulator", BatterySimulator)


def _battery_id(request: web.Request) -> int:
    raw = request.match_info["battery_id"]
    try:
        return int(raw)
    except ValueError:
        raise web.HTTPBadRequest(text=f"Invalid batteryId: {raw}") from None


async def enable_voltage_drop(request: web.Request) -> web.Response:
    request.app[SIMULATOR_KEY].enable_anomaly(_battery_id(request))
    return web.Response(text="Enabled Voltage drop")


async def disable_voltage_drop(request: web.Request) -> web.Response:
    request.app[SIMULATOR_KEY].disable_anomaly(_battery_id(request))
    return web.Response(text="Disabled Voltage drop")


def build_control_app(simulator: BatterySimulator) -> web.Application:
    app = web.Application()
    app[SIMULATOR_KEY] = simulator
    app.router.add_get("/bms/enableVoltageDrop/{battery_id}", enable_voltage_drop)
    app.router.add_get("/bms/disableVoltageDrop/{battery_id}", disable_voltage_drop)
    return app


class ControlServer:
    """Serve :func:`build_control_app` on ``host:port``."""

    def __init__(self, simulator: BatterySimulator, *, host: str, port: int) -> None:
        self._app = build_control_app(simulator)
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        runner = web.AppRunner(self._app)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        await site.start()
        self._runner = runner
        _logger.info("Control endpoint listening on %s:%s", self._host, self._port)

    async def stop(self) -> None:
        runner = self._runner
        self._runner = None
        if runner is not None:
            await runner.cleanup()
