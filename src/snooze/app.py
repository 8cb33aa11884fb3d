"""Application wiring: builds the components, runs them, shuts them down.

Startup phases:
1. Settings + docker availability
2. Identity (which project, which container are we)
3. Core components (engine, discovery, state, controller, monitor)
4. HTTP server + monitor task, then wait for a signal
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any

from aiohttp import web

from snooze.config import Settings, get_settings
from snooze.discovery import ContainerDiscovery, resolve_identity
from snooze.engine import DockerEngine
from snooze.http_server import create_app, start_http_server
from snooze.lifecycle import LifecycleController
from snooze.logger import bind_project, logger, set_level
from snooze.monitor import ActivityMonitor
from snooze.state import ActivityState
from snooze.utils import create_background_task


class SnoozeApp:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.engine = DockerEngine(
            host=self.settings.docker.host,
            timeout=self.settings.docker.command_timeout_seconds,
        )
        self.state = ActivityState()
        self.stop_event = asyncio.Event()
        self.discovery: ContainerDiscovery | None = None
        self.controller: LifecycleController | None = None
        self.monitor: ActivityMonitor | None = None
        self._http_runner: web.AppRunner | None = None
        self._tasks: list[asyncio.Task[Any]] = []

    async def build(self) -> tuple[LifecycleController, ActivityMonitor]:
        """Resolve identity and construct the core components."""
        s = self.settings
        identity = await resolve_identity(self.engine, s.project)
        bind_project(identity.project)
        self.discovery = ContainerDiscovery(
            self.engine,
            identity,
            allow_list_mode=s.project.allow_list_mode,
            enable_label=s.project.enable_label,
            project_label=s.project.project_label,
        )
        self.controller = LifecycleController(
            self.discovery,
            self.state,
            stop_grace_seconds=s.monitor.stop_grace_seconds,
        )
        self.monitor = ActivityMonitor(
            self.discovery,
            self.state,
            self.controller,
            sleep_timeout=s.sleep_timeout,
            interval=s.monitor_interval,
        )
        logger.info(
            "Controller ready",
            project=identity.project,
            container=identity.container_id,
            mode=self.discovery.mode,
        )
        return self.controller, self.monitor

    def request_shutdown(self, sig_name: str) -> None:
        if self.stop_event.is_set():
            return
        logger.info("Shutdown signal received", signal=sig_name)
        self.stop_event.set()

    async def run(self) -> None:
        """Main entry point: startup sequence, then block until shutdown."""
        set_level(self.settings.logging.level)
        if not self.engine.is_available():
            raise RuntimeError(f"{self.engine.cli!r} CLI not found on PATH")

        controller, monitor = await self.build()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: self.request_shutdown(s.name))

        http_app = create_app(
            controller,
            sleep_timeout=self.settings.sleep_timeout,
            prefix=self.settings.server.endpoint_prefix,
        )
        self._http_runner = await start_http_server(
            http_app, self.settings.server.host, self.settings.server.port
        )
        self._tasks.append(
            create_background_task(monitor.run(self.stop_event), name="activity-monitor")
        )

        try:
            await self.stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        self.stop_event.set()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        for task in self._tasks:
            task.cancel()
        # failures were already logged by the done-callback
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        if self._http_runner:
            await self._http_runner.cleanup()
            self._http_runner = None
        logger.info("Shutdown complete")
