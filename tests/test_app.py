"""Tests for application wiring and shutdown."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from conftest import PROJECT, FakeEngine, cid, make_container, make_settings

from snooze.app import SnoozeApp
from snooze.config import MonitorConfig, ProjectConfig, ServerConfig
from snooze.errors import IdentityError


class _AvailableEngine(FakeEngine):
    cli = "docker"

    def is_available(self) -> bool:
        return True


def _app(engine: FakeEngine, **overrides) -> SnoozeApp:
    settings = make_settings(
        monitor=MonitorConfig(interval_seconds=0.01, sleep_timeout_seconds=3600),
        server=ServerConfig(host="127.0.0.1", port=0),
        **overrides,
    )
    app = SnoozeApp(settings)
    app.engine = engine  # type: ignore[assignment]
    return app


async def test_build_wires_components():
    app = _app(_AvailableEngine([make_container("shop-web-1")]))
    controller, monitor = await app.build()
    assert app.discovery is not None and app.discovery.project == PROJECT
    assert controller is app.controller and controller.state is app.state
    assert monitor is app.monitor and monitor.interval == 0.01
    assert monitor.controller is controller


async def test_build_resolves_project_from_own_container():
    own = cid("shop-proxy-1")
    engine = _AvailableEngine([make_container("shop-proxy-1", container_id=own)])
    app = _app(engine, project=ProjectConfig(container_id=own[:12]))
    await app.build()
    assert app.discovery is not None
    assert app.discovery.project == PROJECT
    assert app.discovery.identity.container_id == own[:12]


async def test_build_fails_without_identity():
    app = _app(_AvailableEngine(), project=ProjectConfig(container_id="unknown"))
    with pytest.raises(IdentityError):
        await app.build()


async def test_run_requires_docker_cli():
    engine = _AvailableEngine()
    app = _app(engine)
    with (
        patch.object(engine, "is_available", return_value=False),
        pytest.raises(RuntimeError, match="not found"),
    ):
        await app.run()


async def test_run_until_shutdown():
    engine = _AvailableEngine([make_container("shop-web-1", state="running")])
    app = _app(engine)

    task = asyncio.create_task(app.run())
    await asyncio.sleep(0.2)
    assert app.state.is_up() is True  # monitor reconciled the out-of-band state

    app.request_shutdown("SIGTERM")
    await asyncio.wait_for(task, timeout=2)

    assert app.stop_event.is_set()
    assert app._tasks == []
    assert app._http_runner is None
    assert engine.list_calls >= 1
