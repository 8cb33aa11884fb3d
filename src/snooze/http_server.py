"""Embedded HTTP server for status and manual wake/sleep.

All routes live under ``/<endpoint_prefix>/`` so they can sit beside the
proxied service without clashing with its paths.
"""

from __future__ import annotations

import time
from datetime import timedelta

from aiohttp import web

from snooze.errors import DiscoveryError
from snooze.lifecycle import LifecycleController
from snooze.logger import logger

_start_time = time.monotonic()


def _unavailable(exc: DiscoveryError) -> web.Response:
    return web.json_response(
        {"error": "container engine unavailable", "detail": str(exc)},
        status=503,
    )


async def _handle_health(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - _start_time, 1),
        }
    )


async def _handle_status(request: web.Request) -> web.Response:
    controller: LifecycleController = request.app["controller"]
    sleep_timeout: timedelta = request.app["sleep_timeout"]
    snap = controller.state.snapshot()
    return web.json_response(
        {
            "project": controller.project,
            "containers_up": snap.containers_up,
            "last_activity": snap.last_activity.isoformat(),
            "idle_seconds": round(controller.state.idle_for().total_seconds(), 1),
            "sleep_timeout_seconds": sleep_timeout.total_seconds(),
        }
    )


async def _handle_containers(request: web.Request) -> web.Response:
    controller: LifecycleController = request.app["controller"]
    try:
        members = await controller.discovery.members()
    except DiscoveryError as exc:
        return _unavailable(exc)
    return web.json_response(
        [{"id": m.short_id, "name": m.name, "state": m.state} for m in members]
    )


async def _handle_wake(request: web.Request) -> web.Response:
    controller: LifecycleController = request.app["controller"]
    controller.state.record_activity()
    try:
        started = await controller.wake()
    except DiscoveryError as exc:
        logger.warning("Manual wake failed", err=str(exc))
        return _unavailable(exc)
    return web.json_response({"containers_up": controller.state.is_up(), "started": started})


async def _handle_sleep(request: web.Request) -> web.Response:
    controller: LifecycleController = request.app["controller"]
    logger.info("Manual sleep requested", project=controller.project)
    try:
        await controller.stop_all()
    except DiscoveryError as exc:
        logger.warning("Manual sleep failed", err=str(exc))
        return _unavailable(exc)
    return web.json_response({"containers_up": controller.state.is_up()})


def create_app(
    controller: LifecycleController,
    *,
    sleep_timeout: timedelta,
    prefix: str = "sleep-proxy",
) -> web.Application:
    app = web.Application()
    app["controller"] = controller
    app["sleep_timeout"] = sleep_timeout
    base = f"/{prefix.strip('/')}"
    app.router.add_get(f"{base}/health", _handle_health)
    app.router.add_get(f"{base}/status", _handle_status)
    app.router.add_get(f"{base}/containers", _handle_containers)
    app.router.add_post(f"{base}/wake", _handle_wake)
    app.router.add_post(f"{base}/sleep", _handle_sleep)
    return app


async def start_http_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving *app* and return the runner (call ``cleanup()`` to stop)."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("HTTP server listening", host=host, port=port)
    return runner
