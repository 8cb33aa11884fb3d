"""Shared test fixtures for snooze."""

from __future__ import annotations

import dataclasses
import hashlib
from datetime import UTC, datetime, timedelta

import pytest

from snooze.discovery import ContainerDiscovery
from snooze.errors import EngineError
from snooze.lifecycle import LifecycleController
from snooze.state import ActivityState
from snooze.types import ContainerRef, Identity

PROJECT = "shop"
PROJECT_LABEL = "com.docker.compose.project"
ENABLE_LABEL = "sleep-proxy.enable"

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures: importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object from pure defaults: no config.toml, no .env.

    Usage::

        s = make_settings(monitor=MonitorConfig(sleep_timeout_seconds=60))
    """
    from snooze.config import (
        DockerConfig,
        LoggingConfig,
        MonitorConfig,
        ProjectConfig,
        ServerConfig,
        Settings,
    )

    defaults = {
        "project": ProjectConfig(name=PROJECT),
        "monitor": MonitorConfig(),
        "docker": DockerConfig(),
        "server": ServerConfig(),
        "logging": LoggingConfig(),
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def cid(name: str) -> str:
    """Deterministic 64-char container id for *name*."""
    return hashlib.sha256(name.encode()).hexdigest()


def make_container(
    name: str,
    *,
    state: str = "exited",
    project: str = PROJECT,
    enable: str | None = None,
    container_id: str | None = None,
) -> ContainerRef:
    labels = {PROJECT_LABEL: project}
    if enable is not None:
        labels[ENABLE_LABEL] = enable
    return ContainerRef(id=container_id or cid(name), name=name, state=state, labels=labels)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeEngine:
    """In-memory container engine that records every call."""

    def __init__(self, containers: list[ContainerRef] | None = None) -> None:
        self.containers: dict[str, ContainerRef] = {c.id: c for c in containers or []}
        self.list_calls = 0
        self.started: list[str] = []
        self.stopped: list[tuple[str, int]] = []
        self.fail_list = False
        self.fail_start: set[str] = set()
        self.fail_stop: set[str] = set()

    def add(self, ref: ContainerRef) -> None:
        self.containers[ref.id] = ref

    def set_state(self, container_id: str, state: str) -> None:
        self.containers[container_id] = dataclasses.replace(
            self.containers[container_id], state=state
        )

    def set_all(self, state: str) -> None:
        for container_id in list(self.containers):
            self.set_state(container_id, state)

    async def list_containers(self, label_filter: str) -> list[ContainerRef]:
        self.list_calls += 1
        if self.fail_list:
            raise EngineError("ps", "Cannot connect to the Docker daemon", 1)
        key, _, value = label_filter.partition("=")
        return [c for c in self.containers.values() if c.labels.get(key) == value]

    async def start_container(self, container_id: str) -> None:
        self.started.append(container_id)
        if container_id in self.fail_start:
            raise EngineError("start", "no such image", 1)
        self.set_state(container_id, "running")

    async def stop_container(self, container_id: str, grace_seconds: int) -> None:
        self.stopped.append((container_id, grace_seconds))
        if container_id in self.fail_stop:
            raise EngineError("stop", "permission denied", 1)
        self.set_state(container_id, "exited")

    async def inspect_labels(self, container_id: str) -> dict[str, str]:
        for ref in self.containers.values():
            if ref.id.startswith(container_id):
                return dict(ref.labels)
        raise EngineError("inspect", f"No such container: {container_id}", 1)


def make_core(
    engine: FakeEngine,
    *,
    clock: FakeClock | None = None,
    own_id: str = "",
    allow_list_mode: bool = False,
    stop_grace_seconds: int = 10,
) -> tuple[ContainerDiscovery, ActivityState, LifecycleController]:
    discovery = ContainerDiscovery(
        engine,
        Identity(project=PROJECT, container_id=own_id),
        allow_list_mode=allow_list_mode,
    )
    state = ActivityState(clock=clock) if clock is not None else ActivityState()
    controller = LifecycleController(discovery, state, stop_grace_seconds=stop_grace_seconds)
    return discovery, state, controller


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _default_settings(monkeypatch):
    """Each test starts with a Settings singleton built from defaults only."""
    monkeypatch.setattr("snooze.config._settings", make_settings())


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def shop_engine() -> FakeEngine:
    """Project "shop": three containers, one opted out."""
    return FakeEngine(
        [
            make_container("shop-web-1"),
            make_container("shop-db-1"),
            make_container("shop-backup-1", enable="false"),
        ]
    )
